"""Generation job orchestration: initiate, run inline, report status, retry, cancel, expire."""

from __future__ import annotations

import logging
import math
from contextlib import AbstractAsyncContextManager
from datetime import timedelta
from typing import Any

from cvengine.config import Settings
from cvengine.core.exceptions import InvalidTransitionError, NotFoundError
from cvengine.cv.features.registry import FeatureRegistry, parse_features
from cvengine.cv.files import FileManager
from cvengine.cv.layouts.registry import TemplateRegistry
from cvengine.cv.pdf import PdfTimeouts, PlaywrightPdfRenderer
from cvengine.jobs.models import JobRecord, can_transition
from cvengine.jobs.pipeline import GenerationPipeline, load_owned_job
from cvengine.jobs.progress import build_feature_tracking, estimate_total_seconds, overall_progress
from cvengine.jobs.recovery import ErrorClassifier, KeywordErrorClassifier
from cvengine.jobs.worker import GenerationWorker
from cvengine.services.storage_client import ObjectStorage, build_storage_client
from cvengine.services.tasks.factory import get_task_enqueuer
from cvengine.services.tasks.interface import GenerationTask, TaskEnqueuer
from cvengine.services.tasks.local import InProcessTaskRunner
from cvengine.storage.jobs_repo import EnrichmentSource, JobsRepository, ResumeSource
from cvengine.utils.time import now_iso, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

QUEUE_START_ESTIMATE_SECONDS = 60
# Reset on every (re)start so a retried job does not report stale outcomes.
_RESET_ON_START = ("recovery_info", "error", "error_code", "failed_at", "generated_files", "file_warnings", "completed_at")


class GenerationService:
  """Owns the job state machine on behalf of the HTTP layer."""

  def __init__(self, *, jobs_repo: JobsRepository, resume_source: ResumeSource, worker: GenerationWorker, enqueuer: TaskEnqueuer, runner: InProcessTaskRunner | None, template_registry: TemplateRegistry, classifier: ErrorClassifier, max_retries: int = 3, pending_expiry_seconds: int = 86400, default_template: str = "modern") -> None:
    self._jobs_repo = jobs_repo
    self._resume_source = resume_source
    self._worker = worker
    self._enqueuer = enqueuer
    self._runner = runner
    self._template_registry = template_registry
    self._classifier = classifier
    self._max_retries = max_retries
    self._pending_expiry_seconds = pending_expiry_seconds
    self._default_template = default_template

  @property
  def worker(self) -> GenerationWorker:
    return self._worker

  @property
  def runner(self) -> InProcessTaskRunner | None:
    return self._runner

  async def initiate(self, job_id: str, template_id: str | None, features: list[str] | None, user_id: str) -> dict[str, Any]:
    """Validate, move the job to generating and hand it to the background executor."""
    record = await load_owned_job(self._jobs_repo, job_id, user_id)
    if record.status != "pending":
      raise InvalidTransitionError(f"Cannot start generation for a job in status '{record.status}'")
    try:
      task, estimate = await self._prepare(record, template_id, features, retry_count=record.retry_count)
      await self._enqueuer.enqueue(task)
    except Exception as exc:
      await self._rollback(record, exc)
      raise
    logger.info("Generation initiated job_id=%s features=%s estimate=%ss", job_id, task.features, estimate)
    return _initiation_payload(task, estimate)

  async def generate_sync(self, job_id: str, template_id: str | None, features: list[str] | None, user_id: str) -> dict[str, Any]:
    """Run the whole generation within the request and report the outcome."""
    record = await load_owned_job(self._jobs_repo, job_id, user_id)
    if record.status != "pending":
      raise InvalidTransitionError(f"Cannot start generation for a job in status '{record.status}'")
    try:
      task, _ = await self._prepare(record, template_id, features, retry_count=record.retry_count)
    except Exception as exc:
      await self._rollback(record, exc)
      raise

    result = await self._worker.run(task.job_id, task.template_id, task.features, task.user_id)
    if result is not None:
      return {"success": True, "job_id": job_id, "status": "completed", "generated_cv": {**result.files.to_generated_files(), "template_id": result.template_id, "features": result.features.completed, "failed_features": result.features.failed, "warnings": result.files.errors}}

    final = await self._jobs_repo.get_job(job_id)
    status = final.status if final is not None else "failed"
    return {"success": False, "job_id": job_id, "status": status, "error": _error_payload(final, self._max_retries) if final is not None else None}

  async def retry(self, job_id: str, user_id: str) -> dict[str, Any]:
    """Restart a failed job with its original template and features."""
    record = await load_owned_job(self._jobs_repo, job_id, user_id)
    if record.status != "failed":
      raise InvalidTransitionError(f"Only failed jobs can be retried (status '{record.status}')")
    if not _recoverable(record):
      raise InvalidTransitionError("Job failure is not retryable")
    if record.retry_count >= self._max_retries:
      raise InvalidTransitionError("Retry limit reached")
    try:
      task, estimate = await self._prepare(record, record.selected_template, record.selected_features, retry_count=record.retry_count + 1)
      await self._enqueuer.enqueue(task)
    except Exception as exc:
      await self._rollback(record, exc, retry_count=record.retry_count + 1)
      raise
    logger.info("Generation retried job_id=%s attempt=%d", job_id, record.retry_count + 1)
    return _initiation_payload(task, estimate)

  async def cancel(self, job_id: str, user_id: str) -> dict[str, Any]:
    record = await load_owned_job(self._jobs_repo, job_id, user_id)
    if not can_transition(record.status, "cancelled"):
      raise InvalidTransitionError(f"Cannot cancel a job in status '{record.status}'")
    cancelled_at = now_iso()
    await self._jobs_repo.update_job(job_id, status="cancelled", cancelled_at=cancelled_at)
    task_cancelled = self._runner.cancel(job_id) if self._runner is not None else False
    logger.info("Generation cancelled job_id=%s task_cancelled=%s", job_id, task_cancelled)
    return {"job_id": job_id, "status": "cancelled", "cancelled_at": cancelled_at}

  async def get_status(self, job_id: str, user_id: str) -> dict[str, Any]:
    record = await load_owned_job(self._jobs_repo, job_id, user_id)
    payload: dict[str, Any] = {
      "job_id": record.job_id,
      "status": record.status,
      "selected_template": record.selected_template,
      "selected_features": list(record.selected_features),
      "features": record.feature_tracking,
      "estimated_time": record.estimated_time,
      "created_at": record.created_at,
      "updated_at": record.updated_at,
    }

    if record.status == "pending":
      ahead = await self._jobs_repo.count_pending_before(record.created_at)
      payload["queue_position"] = ahead + 1
      payload["estimated_start_time"] = to_iso(utc_now() + timedelta(seconds=QUEUE_START_ESTIMATE_SECONDS))
    elif record.status == "generating":
      steps = [{"feature": feature_id, **entry} for feature_id, entry in record.feature_tracking.items()]
      payload["steps"] = steps
      payload["current_step"] = _current_step(steps)
      payload["progress"] = overall_progress(record.feature_tracking)
      payload["estimated_completion_time"] = record.estimated_completion_time
    elif record.status == "completed":
      payload["progress"] = 100
      payload["completed_at"] = record.completed_at
      payload["total_processing_time_ms"] = _elapsed_ms(record.generation_started_at, record.completed_at)
      payload["results"] = {"files": record.generated_files, "features": record.feature_tracking}
      payload["warnings"] = list(record.file_warnings)
    elif record.status == "failed":
      payload["error"] = _error_payload(record, self._max_retries)
      payload["failed_at"] = record.failed_at
      payload["retry_count"] = record.retry_count
      payload["can_retry"] = record.retry_count < self._max_retries and _recoverable(record)
      payload["recommended_retry_delay"] = (record.recovery_info or {}).get("recommended_retry_delay")
    elif record.status == "cancelled":
      payload["cancelled_at"] = record.cancelled_at
    elif record.status == "expired":
      payload["expired_at"] = record.expired_at
    return payload

  async def expire_stale(self, *, batch_size: int = 100) -> int:
    """Expire pending jobs older than the configured window; returns how many were expired."""
    cutoff = to_iso(utc_now() - timedelta(seconds=self._pending_expiry_seconds))
    expired = 0
    for record in await self._jobs_repo.find_stale_pending(cutoff, limit=batch_size):
      await self._jobs_repo.update_job(record.job_id, status="expired", expired_at=now_iso())
      expired += 1
    if expired:
      logger.info("Expired %d stale pending job(s) created before %s", expired, cutoff)
    return expired

  async def _prepare(self, record: JobRecord, template_id: str | None, features: list[str] | None, *, retry_count: int) -> tuple[GenerationTask, int]:
    if await self._resume_source.get_parsed_resume(record.job_id) is None:
      raise NotFoundError("Parsed CV data not found")

    selected = [feature.value for feature in parse_features(features)]
    template = self._template_registry.resolve_id(template_id or self._default_template)
    estimate = estimate_total_seconds(selected)
    started = utc_now()
    updated = await self._jobs_repo.update_job(
      record.job_id,
      status="generating",
      selected_template=template,
      selected_features=selected,
      feature_tracking=build_feature_tracking(selected),
      estimated_time=estimate,
      estimated_completion_time=to_iso(started + timedelta(seconds=estimate)),
      generation_started_at=to_iso(started),
      retry_count=retry_count,
      clear=_RESET_ON_START,
    )
    if updated is None:
      raise NotFoundError("Job not found")
    return GenerationTask(job_id=record.job_id, user_id=record.user_id, template_id=template, features=selected), estimate

  async def _rollback(self, record: JobRecord, error: Exception, *, retry_count: int | None = None) -> None:
    classification = self._classifier.classify(error)
    message = str(error) or type(error).__name__
    # A failed retry dispatch still counts as an attempt; record and recovery hint agree on it.
    attempts = record.retry_count if retry_count is None else retry_count
    try:
      await self._jobs_repo.update_job(
        record.job_id,
        status="failed",
        error=message,
        error_code=classification.error_code,
        recovery_info=classification.to_recovery_info(retry_count=attempts, max_retries=self._max_retries),
        retry_count=attempts,
        failed_at=now_iso(),
      )
    except Exception:  # noqa: BLE001
      logger.error("Failed to roll back job job_id=%s after error: %s", record.job_id, message, exc_info=True)


def _initiation_payload(task: GenerationTask, estimate: int) -> dict[str, Any]:
  minutes = math.ceil(estimate / 60)
  return {
    "job_id": task.job_id,
    "status": "initiated",
    "selected_features": list(task.features),
    "estimated_time": estimate,
    "message": f"CV generation started with {len(task.features)} features. Estimated completion in {minutes} minutes.",
  }


def _recoverable(record: JobRecord) -> bool:
  return bool((record.recovery_info or {}).get("retryable", True))


def _error_payload(record: JobRecord, max_retries: int) -> dict[str, Any]:
  return {"code": record.error_code or "PROCESSING_FAILED", "message": record.error or "Unknown error", "recoverable": _recoverable(record) and record.retry_count < max_retries}


def _current_step(steps: list[dict[str, Any]]) -> str:
  for step in steps:
    if step.get("status") == "processing":
      return f"Generating {step['feature']}"
  if steps and all(step.get("status") in {"completed", "failed"} for step in steps):
    return "Saving generated files"
  if any(step.get("status") in {"completed", "failed"} for step in steps):
    return "Generating features"
  return "Preparing document"


def _elapsed_ms(started: str | None, finished: str | None) -> int | None:
  start, end = parse_iso(started), parse_iso(finished)
  if start is None or end is None:
    return None
  return max(0, int((end - start).total_seconds() * 1000))


def build_generation_service(settings: Settings, *, jobs_repo: JobsRepository, resume_source: ResumeSource, enrichment_source: EnrichmentSource | None, storage: ObjectStorage | None = None) -> GenerationService:
  """Assemble the service graph. Registries are created here, once, and passed down explicitly."""
  storage = storage or build_storage_client(settings)
  pdf_renderer = PlaywrightPdfRenderer(PdfTimeouts.from_settings(settings)) if settings.pdf_enabled else None
  file_manager = FileManager(storage, pdf_renderer=pdf_renderer, url_ttl_seconds=settings.signed_url_ttl_seconds)
  feature_registry = FeatureRegistry()
  template_registry = TemplateRegistry(default_template=settings.default_template)
  classifier = KeywordErrorClassifier()
  pipeline = GenerationPipeline(jobs_repo=jobs_repo, resume_source=resume_source, enrichment_source=enrichment_source, feature_registry=feature_registry, template_registry=template_registry, file_manager=file_manager, profile_base_url=settings.public_profile_base_url)
  worker = GenerationWorker(jobs_repo=jobs_repo, pipeline=pipeline, classifier=classifier, deadline_seconds=settings.generation_deadline_seconds, max_retries=settings.max_retries)

  async def handle(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    await worker.run(task.job_id, task.template_id, task.features, task.user_id, slot=slot)

  runner = InProcessTaskRunner(handle, max_concurrency=settings.max_concurrent_generations)
  enqueuer = get_task_enqueuer(settings, runner)
  return GenerationService(
    jobs_repo=jobs_repo,
    resume_source=resume_source,
    worker=worker,
    enqueuer=enqueuer,
    runner=runner,
    template_registry=template_registry,
    classifier=classifier,
    max_retries=settings.max_retries,
    pending_expiry_seconds=settings.pending_expiry_seconds,
    default_template=settings.default_template,
  )
