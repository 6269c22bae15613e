"""Time estimates and per-feature progress tracking for generation jobs."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping

from cvengine.jobs.models import FeatureStatus, FeatureTrackingEntry, JobRecord
from cvengine.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

BASE_GENERATION_SECONDS = 60
DEFAULT_FEATURE_SECONDS = 60
QUEUED_STEP = "Queued for processing"

FEATURE_ESTIMATES: dict[str, int] = {
  "skills-visualization": 45,
  "language-proficiency": 30,
  "social-media-links": 20,
  "embed-qr-code": 25,
  "privacy-mode": 15,
  # Content-optimization features have catalogue estimates but no generator, so
  # parse_features never lets them through to initiation.
  "ats-optimization": 90,
  "achievement-highlighting": 75,
  "achievements-showcase": 75,
  "certification-badges": 60,
  "interactive-timeline": 90,
  "generate-podcast": 180,
  "video-introduction": 150,
  "portfolio-gallery": 120,
  "availability-calendar": 90,
  "calendar-integration": 90,
  "testimonials-carousel": 105,
  "personality-insights": 200,
  "industry-optimization": 180,
  "regional-optimization": 150,
}

_STEP_LABELS: dict[str, str] = {
  "pending": QUEUED_STEP,
  "processing": "Generating feature",
  "completed": "Completed",
  "failed": "Failed",
}


class JobCancelledError(Exception):
  """Raised when a progress write observes that the job was cancelled."""


def estimate_feature_seconds(feature_id: str) -> int:
  return FEATURE_ESTIMATES.get(feature_id, DEFAULT_FEATURE_SECONDS)


def estimate_total_seconds(feature_ids: Iterable[str]) -> int:
  """Return ``ceil((60 + sum of feature estimates) * 1.1)`` in whole seconds; the bare base for no features."""

  feature_ids = list(feature_ids)
  if not feature_ids:
    return BASE_GENERATION_SECONDS
  total = BASE_GENERATION_SECONDS + sum(estimate_feature_seconds(feature_id) for feature_id in feature_ids)
  # Integer ceiling avoids 66.00000000000001 style float artifacts.
  return (total * 11 + 9) // 10


def build_feature_tracking(feature_ids: Iterable[str]) -> dict[str, FeatureTrackingEntry]:
  """Create the initial tracking map with every feature queued."""

  return {feature_id: FeatureTrackingEntry(status="pending", progress=0, estimated_time_remaining=estimate_feature_seconds(feature_id), current_step=QUEUED_STEP) for feature_id in feature_ids}


def overall_progress(tracking: Mapping[str, Mapping[str, object]]) -> int:
  """Average feature progress, used for the coarse job-level progress bar."""

  if not tracking:
    return 0
  values = [int(entry.get("progress", 0) or 0) for entry in tracking.values()]
  return round(sum(values) / len(values))


class FeatureProgressTracker:
  """Keep the tracking map in memory and persist it after every transition.

  The key set is fixed by the initial map; updates for features that were not
  tracked at initiation are ignored.
  """

  def __init__(self, *, job_id: str, jobs_repo: JobsRepository, tracking: Mapping[str, FeatureTrackingEntry]) -> None:
    self._job_id = job_id
    self._jobs_repo = jobs_repo
    self._tracking: dict[str, FeatureTrackingEntry] = copy.deepcopy(dict(tracking))

  @property
  def tracking(self) -> dict[str, FeatureTrackingEntry]:
    return copy.deepcopy(self._tracking)

  def _apply(self, feature_id: str, status: FeatureStatus, error: str | None = None) -> bool:
    entry = self._tracking.get(feature_id)
    if entry is None:
      return False
    entry["status"] = status
    entry["current_step"] = _STEP_LABELS[status]
    if status == "processing":
      entry["progress"] = max(entry["progress"], 10)
    elif status == "completed":
      entry["progress"] = 100
      entry["estimated_time_remaining"] = 0
    elif status == "failed":
      entry["estimated_time_remaining"] = 0
    if error:
      entry["error"] = error
    else:
      entry.pop("error", None)
    return True

  async def _persist(self) -> JobRecord | None:
    current = await self._jobs_repo.get_job(self._job_id)
    if current is not None and current.status == "cancelled":
      raise JobCancelledError(f"Job {self._job_id} was cancelled.")
    record = await self._jobs_repo.update_job(self._job_id, feature_tracking=self.tracking)
    if record is not None and record.status == "cancelled":
      raise JobCancelledError(f"Job {self._job_id} was cancelled.")
    return record

  async def mark(self, feature_id: str, status: FeatureStatus, error: str | None = None) -> JobRecord | None:
    """Record a single feature transition."""

    if not self._apply(feature_id, status, error):
      logger.debug("Ignoring progress for untracked feature job_id=%s feature=%s", self._job_id, feature_id)
      return None
    return await self._persist()

  def fail_outstanding(self, error: str) -> dict[str, FeatureTrackingEntry]:
    """Mark every pending or processing feature failed and return the new map."""

    for feature_id, entry in self._tracking.items():
      if entry["status"] in {"pending", "processing"}:
        self._apply(feature_id, "failed", error)
    return self.tracking

  def complete_outstanding(self) -> dict[str, FeatureTrackingEntry]:
    """Mark features that never reported (data-level features like privacy-mode) completed."""

    for feature_id, entry in self._tracking.items():
      if entry["status"] in {"pending", "processing"}:
        self._apply(feature_id, "completed")
    return self.tracking
