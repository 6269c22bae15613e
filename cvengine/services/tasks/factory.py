from __future__ import annotations

from cvengine.config import Settings
from cvengine.services.tasks.http import LocalHttpEnqueuer
from cvengine.services.tasks.interface import TaskEnqueuer
from cvengine.services.tasks.local import InProcessTaskRunner


def get_task_enqueuer(settings: Settings, runner: InProcessTaskRunner) -> TaskEnqueuer:
  """Pick the dispatch path; both end up executing on ``runner``."""
  if settings.task_service_provider == "local-http":
    return LocalHttpEnqueuer(settings)
  return runner
