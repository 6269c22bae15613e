"""Storage interfaces for generation jobs and the documents they read."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from cvengine.jobs.models import FeatureTrackingEntry, GeneratedFiles, JobRecord, JobStatus, RecoveryInfo


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  ``update_job`` skips fields passed as None; fields named in ``clear`` are
  reset to NULL (or empty) after the other updates are applied.
  """

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(
    self,
    job_id: str,
    *,
    status: JobStatus | None = None,
    selected_template: str | None = None,
    selected_features: list[str] | None = None,
    feature_tracking: dict[str, FeatureTrackingEntry] | None = None,
    estimated_time: int | None = None,
    estimated_completion_time: str | None = None,
    generated_files: GeneratedFiles | None = None,
    file_warnings: list[str] | None = None,
    recovery_info: RecoveryInfo | None = None,
    error: str | None = None,
    error_code: str | None = None,
    retry_count: int | None = None,
    generation_started_at: str | None = None,
    completed_at: str | None = None,
    failed_at: str | None = None,
    cancelled_at: str | None = None,
    expired_at: str | None = None,
    clear: Iterable[str] = (),
  ) -> JobRecord | None:
    """Apply partial updates to a job."""

  async def count_pending_before(self, created_at: str) -> int:
    """Count pending jobs created strictly before ``created_at``."""

  async def find_stale_pending(self, created_before: str, limit: int = 100) -> list[JobRecord]:
    """Return pending jobs created before the cutoff."""


class ResumeSource(Protocol):
  """Read access to the structured résumé produced by the parsing stage."""

  async def get_parsed_resume(self, job_id: str, *, privacy: bool = False) -> dict[str, Any] | None:
    """Return the parsed résumé, or its redacted version when ``privacy`` is set and one exists."""


class EnrichmentSource(Protocol):
  """Read access to optional analysis documents (ATS, personality, media)."""

  async def get_enrichment(self, job_id: str) -> dict[str, dict[str, Any]]:
    """Return enrichment documents keyed by kind; empty when none exist."""


NULLABLE_FIELDS = frozenset({"generated_files", "recovery_info", "error", "error_code", "estimated_completion_time", "completed_at", "failed_at", "cancelled_at", "expired_at"})
LIST_FIELDS = frozenset({"file_warnings"})
