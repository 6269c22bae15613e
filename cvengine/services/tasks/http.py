from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

from cvengine.config import Settings
from cvengine.services.tasks.interface import GenerationTask

logger = logging.getLogger(__name__)

TASK_PATH = "/internal/tasks/process-job"


class LocalHttpEnqueuer:
  """Dispatch generations to the internal task endpoint over HTTP, as a task queue would."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Route requests in-process via ASGITransport for loopback hosts."""
    hostname = (urlparse(base_url).hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from cvengine.main import app

      return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {"authorization": f"Bearer {self.settings.task_secret}"}

  async def enqueue(self, task: GenerationTask) -> None:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{TASK_PATH}"
    try:
      async with self._build_client(self.settings.base_url) as client:
        logger.info("Dispatching generation task to %s job_id=%s", url, task.job_id)
        # The endpoint only accepts the task; generation continues after the response.
        response = await client.post(url, json=task.to_payload(), headers=self._task_headers(), timeout=30.0)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.error("Task dispatch returned %s for job %s: %s", exc.response.status_code, task.job_id, exc.response.text)
      raise
    except httpx.RequestError as exc:
      logger.error("Failed to dispatch task for job %s: %s", task.job_id, exc)
      raise
