"""The generation pipeline: résumé -> features -> layout -> stored artifacts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import pydantic

from cvengine.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from cvengine.cv.features.base import FeatureType
from cvengine.cv.features.registry import FeatureBundle, FeatureRegistry, ProgressCallback, parse_features
from cvengine.cv.files import FileGenerationResult, FileManager
from cvengine.cv.layouts.registry import TemplateRegistry
from cvengine.cv.models import ParsedResume
from cvengine.jobs.models import JobRecord
from cvengine.jobs.progress import FeatureProgressTracker, JobCancelledError
from cvengine.storage.jobs_repo import EnrichmentSource, JobsRepository, ResumeSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
  job_id: str
  template_id: str
  features: FeatureBundle
  files: FileGenerationResult
  html: str


async def load_owned_job(jobs_repo: JobsRepository, job_id: str, user_id: str) -> JobRecord:
  """Fetch a job and verify the caller owns it."""
  record = await jobs_repo.get_job(job_id)
  if record is None:
    raise NotFoundError("Job not found")
  if record.user_id != user_id:
    raise AuthorizationError("Permission denied")
  return record


class GenerationPipeline:
  """Run one generation end to end. Collaborators are injected so tests can swap them."""

  def __init__(self, *, jobs_repo: JobsRepository, resume_source: ResumeSource, enrichment_source: EnrichmentSource | None, feature_registry: FeatureRegistry, template_registry: TemplateRegistry, file_manager: FileManager, profile_base_url: str = "") -> None:
    self._jobs_repo = jobs_repo
    self._resume_source = resume_source
    self._enrichment_source = enrichment_source
    self._feature_registry = feature_registry
    self._template_registry = template_registry
    self._file_manager = file_manager
    self._profile_base_url = profile_base_url.rstrip("/")

  async def generate(self, job_id: str, template_id: str | None, feature_ids: list[str], user_id: str, *, tracker: FeatureProgressTracker | None = None) -> GenerationResult:
    await load_owned_job(self._jobs_repo, job_id, user_id)
    features = parse_features(feature_ids)
    resume = await self._load_resume(job_id, privacy=FeatureType.PRIVACY_MODE in features)

    options: dict[str, Any] = {"enrichment": await self._load_enrichment(job_id)}
    if self._profile_base_url:
      options["profile_url"] = f"{self._profile_base_url}/{job_id}"

    feature_values = [feature.value for feature in features]
    on_progress = _tracking_callback(job_id, tracker) if tracker is not None else None
    bundle = await self._feature_registry.generate_features(resume, job_id, feature_values, options, on_progress)
    if bundle.failed:
      logger.info("Features failed job_id=%s failed=%s", job_id, sorted(bundle.failed))

    renderer = self._template_registry.get(template_id)
    html = renderer.render(resume, job_id, feature_values, bundle)
    files = await self._file_manager.persist(job_id, user_id, html)
    return GenerationResult(job_id=job_id, template_id=renderer.template_id, features=bundle, files=files, html=html)

  async def _load_resume(self, job_id: str, *, privacy: bool) -> ParsedResume:
    raw = await self._resume_source.get_parsed_resume(job_id, privacy=privacy)
    if raw is None:
      raise NotFoundError("Parsed CV data not found")
    try:
      return ParsedResume.model_validate(raw)
    except pydantic.ValidationError as exc:
      raise ValidationError(f"Parsed CV data is malformed: {exc.error_count()} validation errors") from exc

  async def _load_enrichment(self, job_id: str) -> dict[str, dict[str, Any]]:
    if self._enrichment_source is None:
      return {}
    try:
      return await self._enrichment_source.get_enrichment(job_id)
    except Exception:  # noqa: BLE001
      logger.warning("Enrichment unavailable job_id=%s; continuing without it", job_id, exc_info=True)
      return {}


def _tracking_callback(job_id: str, tracker: FeatureProgressTracker) -> ProgressCallback:
  async def on_progress(feature_id: str, status: str, error: str | None) -> None:
    try:
      await tracker.mark(feature_id, status, error)  # type: ignore[arg-type]
    except JobCancelledError:
      raise
    except Exception:  # noqa: BLE001
      logger.warning("Progress write failed job_id=%s feature=%s status=%s", job_id, feature_id, status, exc_info=True)

  return on_progress
