"""Background execution of a generation under a hard deadline."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager, nullcontext
from typing import Any

from cvengine.core.exceptions import GenerationTimeout, UnknownGenerationError
from cvengine.jobs.pipeline import GenerationPipeline, GenerationResult
from cvengine.jobs.progress import FeatureProgressTracker, JobCancelledError
from cvengine.jobs.recovery import ErrorClassifier
from cvengine.storage.jobs_repo import JobsRepository
from cvengine.utils.time import now_iso

logger = logging.getLogger(__name__)


def describe_deadline(seconds: float) -> str:
  if seconds >= 60 and seconds % 60 == 0:
    minutes = int(seconds // 60)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"
  return f"{seconds:g} seconds"


class GenerationWorker:
  """Race the pipeline against the deadline and record the outcome on the job.

  ``run`` never raises for generation failures; they end up on the job record.
  Task cancellation is recorded and then re-raised.
  """

  def __init__(self, *, jobs_repo: JobsRepository, pipeline: GenerationPipeline, classifier: ErrorClassifier, deadline_seconds: float, max_retries: int) -> None:
    self._jobs_repo = jobs_repo
    self._pipeline = pipeline
    self._classifier = classifier
    self._deadline_seconds = deadline_seconds
    self._max_retries = max_retries

  async def run(self, job_id: str, template_id: str | None, features: list[str], user_id: str, *, slot: AbstractAsyncContextManager[Any] | None = None) -> GenerationResult | None:
    """Run one generation; returns the result only when it was recorded as completed.

    ``slot`` is entered inside the deadline, so a job queued behind a saturated pool
    still fails once its deadline passes.
    """
    logger.info("Generation started job_id=%s template=%s features=%s", job_id, template_id, features)
    tracker: FeatureProgressTracker | None = None
    deadline = asyncio.timeout(self._deadline_seconds)
    try:
      record = await self._jobs_repo.get_job(job_id)
      tracker = FeatureProgressTracker(job_id=job_id, jobs_repo=self._jobs_repo, tracking=record.feature_tracking if record else {})
      async with deadline, slot if slot is not None else nullcontext():
        result = await self._pipeline.generate(job_id, template_id, features, user_id, tracker=tracker)
    except JobCancelledError:
      logger.info("Generation stopped; job was cancelled job_id=%s", job_id)
      return None
    except TimeoutError as exc:
      if deadline.expired():
        error: BaseException = GenerationTimeout(f"CV generation timed out after {describe_deadline(self._deadline_seconds)}")
        logger.error("Generation deadline exceeded job_id=%s deadline=%ss", job_id, self._deadline_seconds)
      else:
        error = exc
        logger.error("Generation failed job_id=%s error=%s", job_id, exc, exc_info=True)
      await self._record_failure(job_id, tracker, error)
      return None
    except asyncio.CancelledError:
      logger.warning("Generation task cancelled job_id=%s", job_id)
      await self._record_interrupted(job_id, tracker)
      raise
    except Exception as exc:  # noqa: BLE001
      logger.error("Generation failed job_id=%s error=%s", job_id, exc, exc_info=True)
      await self._record_failure(job_id, tracker, exc)
      return None

    if await self._record_success(job_id, tracker, result):
      return result
    return None

  async def _record_success(self, job_id: str, tracker: FeatureProgressTracker, result: GenerationResult) -> bool:
    try:
      current = await self._jobs_repo.get_job(job_id)
      if current is not None and current.status != "generating":
        logger.info("Discarding generation result; job moved to %s job_id=%s", current.status, job_id)
        return False
      await self._jobs_repo.update_job(
        job_id,
        status="completed",
        generated_files=result.files.to_generated_files(),
        file_warnings=list(result.files.errors),
        feature_tracking=tracker.complete_outstanding(),
        completed_at=now_iso(),
        clear=("recovery_info", "error", "error_code", "failed_at"),
      )
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed to record completion job_id=%s", job_id, exc_info=True)
      await self._record_failure(job_id, tracker, exc)
      return False
    logger.info("Generation completed job_id=%s completed=%s failed=%s warnings=%s", job_id, result.features.completed, sorted(result.features.failed), result.files.errors)
    return True

  async def _record_failure(self, job_id: str, tracker: FeatureProgressTracker | None, error: BaseException) -> None:
    classification = self._classifier.classify(error)
    message = str(error) or type(error).__name__
    retry_count = 0
    try:
      current = await self._jobs_repo.get_job(job_id)
      if current is not None and current.status in {"cancelled", "expired", "completed"}:
        logger.info("Not recording failure; job already %s job_id=%s", current.status, job_id)
        return
      retry_count = current.retry_count if current is not None else 0
      tracking = tracker.fail_outstanding(f"CV generation failed: {message}") if tracker is not None else None
      await self._jobs_repo.update_job(
        job_id,
        status="failed",
        error=message,
        error_code=classification.error_code,
        recovery_info=classification.to_recovery_info(retry_count=retry_count, max_retries=self._max_retries),
        feature_tracking=tracking,
        failed_at=now_iso(),
      )
    except Exception:  # noqa: BLE001
      logger.error("Failed to record job failure job_id=%s; attempting minimal update", job_id, exc_info=True)
      try:
        await self._jobs_repo.update_job(job_id, status="failed", error=message, error_code=classification.error_code, recovery_info=classification.to_recovery_info(retry_count=retry_count, max_retries=self._max_retries))
      except Exception:  # noqa: BLE001
        logger.critical("Job left without a terminal status job_id=%s", job_id, exc_info=True)

  async def _record_interrupted(self, job_id: str, tracker: FeatureProgressTracker | None) -> None:
    # Runs while the task is being cancelled; the cancel flow has usually already written "cancelled".
    try:
      current = await self._jobs_repo.get_job(job_id)
    except Exception:  # noqa: BLE001
      logger.error("Could not inspect interrupted job job_id=%s", job_id, exc_info=True)
      return
    if current is not None and current.status == "generating":
      await self._record_failure(job_id, tracker, UnknownGenerationError("Generation interrupted before completion"))
