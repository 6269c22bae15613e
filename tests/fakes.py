"""In-memory doubles for storage, résumé sources and task dispatch, plus a service builder."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from dataclasses import replace
from typing import Any

from cvengine.core.exceptions import RenderDegraded
from cvengine.cv.features.registry import FeatureRegistry
from cvengine.cv.files import FileManager
from cvengine.cv.layouts.registry import TemplateRegistry
from cvengine.jobs.models import JobRecord
from cvengine.jobs.pipeline import GenerationPipeline
from cvengine.jobs.recovery import KeywordErrorClassifier
from cvengine.jobs.worker import GenerationWorker
from cvengine.services.generation import GenerationService
from cvengine.services.tasks.interface import GenerationTask
from cvengine.services.tasks.local import InProcessTaskRunner
from cvengine.storage.jobs_repo import LIST_FIELDS, NULLABLE_FIELDS
from cvengine.utils.time import now_iso

SAMPLE_RESUME: dict[str, Any] = {
  "personalInfo": {"name": "Jordan Rivera", "email": "jordan@example.com", "linkedin": "https://www.linkedin.com/in/jordan-rivera"},
  "summary": "Backend engineer focused on data platforms.",
  "experience": [
    {"company": "Acme", "position": "Senior Engineer", "startDate": "2019", "endDate": "Present", "achievements": ["Cut report latency by 40%"], "technologies": ["Python", "PostgreSQL"]},
    {"company": "Initech", "position": "Engineer", "startDate": "2015", "endDate": "2019", "technologies": ["Python"]},
  ],
  "education": [{"institution": "State University", "degree": "BSc Computer Science", "graduationDate": "2015"}],
  "skills": {"technical": ["Python", "PostgreSQL", "Kubernetes"], "soft": ["Mentoring"], "languages": ["English (Native)", "Spanish (Intermediate)"]},
  "certifications": [{"name": "Cloud Architect", "issuer": "Google", "date": "2022"}],
}


class InMemoryJobsRepo:
  """Async in-memory jobs repo that copies records in and out like a database would."""

  def __init__(self, records: Iterable[JobRecord] = ()) -> None:
    self._records: dict[str, JobRecord] = {record.job_id: copy.deepcopy(record) for record in records}
    self.update_calls: list[dict[str, Any]] = []

  async def create_job(self, record: JobRecord) -> None:
    self._records[record.job_id] = copy.deepcopy(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self._records.get(job_id)
    return copy.deepcopy(record) if record is not None else None

  async def update_job(self, job_id: str, *, clear: Iterable[str] = (), **fields: Any) -> JobRecord | None:
    record = self._records.get(job_id)
    if record is None:
      return None

    self.update_calls.append({key: value for key, value in fields.items() if value is not None})
    changes = {key: copy.deepcopy(value) for key, value in fields.items() if value is not None}
    for name in clear:
      if name in LIST_FIELDS:
        changes[name] = []
      elif name in NULLABLE_FIELDS:
        changes[name] = None
      else:
        raise ValueError(f"Field {name!r} cannot be cleared.")
    # Merge updates onto the latest record to mimic persistence behavior.
    self._records[job_id] = replace(record, updated_at=now_iso(), **changes)
    return copy.deepcopy(self._records[job_id])

  async def count_pending_before(self, created_at: str) -> int:
    return sum(1 for record in self._records.values() if record.status == "pending" and record.created_at < created_at)

  async def find_stale_pending(self, created_before: str, limit: int = 100) -> list[JobRecord]:
    stale = [record for record in self._records.values() if record.status == "pending" and record.created_at < created_before]
    return [copy.deepcopy(record) for record in sorted(stale, key=lambda record: record.created_at)[:limit]]

  async def get_parsed_resume(self, job_id: str, *, privacy: bool = False) -> dict[str, Any] | None:
    record = self._records.get(job_id)
    if record is None:
      return None
    if privacy and record.privacy_version:
      return copy.deepcopy(record.privacy_version)
    return copy.deepcopy(record.parsed_data)


class InMemoryEnrichment:
  def __init__(self, documents: dict[str, dict[str, dict[str, Any]]] | None = None, *, error: Exception | None = None) -> None:
    self._documents = documents or {}
    self._error = error

  async def get_enrichment(self, job_id: str) -> dict[str, dict[str, Any]]:
    if self._error is not None:
      raise self._error
    return self._documents.get(job_id, {})


class InMemoryStorage:
  """Object storage double; ``fail_paths`` makes saves under matching paths raise."""

  def __init__(self, *, fail_paths: Iterable[str] = ()) -> None:
    self.objects: dict[str, tuple[bytes, str]] = {}
    self._fail_paths = tuple(fail_paths)

  async def save(self, object_name: str, data: bytes, content_type: str, cache_control: str = "") -> None:
    if any(marker in object_name for marker in self._fail_paths):
      raise OSError(f"storage unavailable for {object_name}")
    self.objects[object_name] = (data, content_type)

  async def signed_url(self, object_name: str, ttl_seconds: int) -> str:
    return f"https://storage.test/{object_name}?ttl={ttl_seconds}"

  async def exists(self, object_name: str) -> bool:
    return object_name in self.objects

  async def delete(self, object_name: str) -> None:
    self.objects.pop(object_name, None)

  def text(self, object_name: str) -> str:
    return self.objects[object_name][0].decode("utf-8")


class StaticPdfRenderer:
  """Returns fixed bytes, or raises ``RenderDegraded`` when given an error message."""

  def __init__(self, *, error: str | None = None) -> None:
    self.rendered: list[str] = []
    self._error = error

  async def render(self, html: str) -> bytes:
    self.rendered.append(html)
    if self._error:
      raise RenderDegraded(self._error)
    return b"%PDF-1.7 test"


class RecordingEnqueuer:
  def __init__(self, *, error: Exception | None = None) -> None:
    self.tasks: list[GenerationTask] = []
    self._error = error

  async def enqueue(self, task: GenerationTask) -> None:
    if self._error is not None:
      raise self._error
    self.tasks.append(task)


def make_job(job_id: str = "job-1", *, user_id: str = "user-1", status: str = "pending", created_at: str = "2026-01-01T00:00:00Z", parsed_data: dict[str, Any] | None = None, **fields: Any) -> JobRecord:
  resume = SAMPLE_RESUME if parsed_data is None else parsed_data
  return JobRecord(job_id=job_id, user_id=user_id, status=status, created_at=created_at, updated_at=created_at, parsed_data=copy.deepcopy(resume), **fields)


def build_service(
  repo: InMemoryJobsRepo,
  *,
  storage: InMemoryStorage | None = None,
  pdf_renderer: Any = None,
  enrichment: InMemoryEnrichment | None = None,
  pipeline: Any = None,
  enqueuer: Any = None,
  deadline_seconds: float = 720,
  max_retries: int = 3,
  max_concurrency: int = 4,
) -> GenerationService:
  """Wire the real pipeline and worker around in-memory collaborators."""
  storage = storage or InMemoryStorage()
  template_registry = TemplateRegistry()
  classifier = KeywordErrorClassifier()
  if pipeline is None:
    file_manager = FileManager(storage, pdf_renderer=pdf_renderer, url_ttl_seconds=3600)
    pipeline = GenerationPipeline(jobs_repo=repo, resume_source=repo, enrichment_source=enrichment, feature_registry=FeatureRegistry(), template_registry=template_registry, file_manager=file_manager, profile_base_url="https://cv.test/cv")
  worker = GenerationWorker(jobs_repo=repo, pipeline=pipeline, classifier=classifier, deadline_seconds=deadline_seconds, max_retries=max_retries)

  async def handle(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    await worker.run(task.job_id, task.template_id, task.features, task.user_id, slot=slot)

  runner = InProcessTaskRunner(handle, max_concurrency=max_concurrency)
  return GenerationService(
    jobs_repo=repo,
    resume_source=repo,
    worker=worker,
    enqueuer=enqueuer or runner,
    runner=runner,
    template_registry=template_registry,
    classifier=classifier,
    max_retries=max_retries,
  )
