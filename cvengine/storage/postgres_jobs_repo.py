"""Postgres-backed repositories for generation jobs using SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select

from cvengine.core.database import get_session_factory
from cvengine.jobs.models import FeatureTrackingEntry, GeneratedFiles, JobRecord, JobStatus, RecoveryInfo
from cvengine.schema.jobs import CvEnrichment, CvJob
from cvengine.storage.jobs_repo import LIST_FIELDS, NULLABLE_FIELDS
from cvengine.utils.time import now_iso


class PostgresJobsRepository:
  """Persist generation jobs to Postgres. Also serves as the résumé source."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(self._record_to_model(record))
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(CvJob, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def update_job(  # pylint: disable=too-many-arguments
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
    updates: dict[str, Any] = {
      "status": status,
      "selected_template": selected_template,
      "selected_features": selected_features,
      "feature_tracking": feature_tracking,
      "estimated_time": estimated_time,
      "estimated_completion_time": estimated_completion_time,
      "generated_files": generated_files,
      "file_warnings": file_warnings,
      "recovery_info": recovery_info,
      "error": error,
      "error_code": error_code,
      "retry_count": retry_count,
      "generation_started_at": generation_started_at,
      "completed_at": completed_at,
      "failed_at": failed_at,
      "cancelled_at": cancelled_at,
      "expired_at": expired_at,
    }
    async with self._session_factory() as session:
      # Lock the row so concurrent whole-field writes serialize instead of interleaving.
      row = await session.get(CvJob, job_id, with_for_update=True)
      if row is None:
        return None
      for column, value in updates.items():
        if value is not None:
          setattr(row, column, value)
      for column in clear:
        if column in LIST_FIELDS:
          setattr(row, column, [])
        elif column in NULLABLE_FIELDS:
          setattr(row, column, None)
        else:
          raise ValueError(f"Field {column!r} cannot be cleared.")
      row.updated_at = max(now_iso(), row.updated_at or "")
      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

  async def count_pending_before(self, created_at: str) -> int:
    async with self._session_factory() as session:
      stmt = select(func.count()).select_from(CvJob).where(CvJob.status == "pending", CvJob.created_at < created_at)
      return int((await session.execute(stmt)).scalar_one())

  async def find_stale_pending(self, created_before: str, limit: int = 100) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(CvJob).where(CvJob.status == "pending", CvJob.created_at < created_before).order_by(CvJob.created_at.asc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def get_parsed_resume(self, job_id: str, *, privacy: bool = False) -> dict[str, Any] | None:
    async with self._session_factory() as session:
      row = await session.get(CvJob, job_id)
      if row is None:
        return None
      if privacy and row.privacy_version:
        return row.privacy_version
      return row.parsed_data

  def _record_to_model(self, record: JobRecord) -> CvJob:
    return CvJob(
      job_id=record.job_id,
      user_id=record.user_id,
      status=record.status,
      selected_template=record.selected_template,
      selected_features=list(record.selected_features),
      feature_tracking=dict(record.feature_tracking),
      estimated_time=record.estimated_time,
      estimated_completion_time=record.estimated_completion_time,
      generated_files=record.generated_files,
      file_warnings=list(record.file_warnings),
      recovery_info=record.recovery_info,
      error=record.error,
      error_code=record.error_code,
      retry_count=record.retry_count,
      parsed_data=record.parsed_data,
      privacy_version=record.privacy_version,
      created_at=record.created_at,
      updated_at=record.updated_at,
      generation_started_at=record.generation_started_at,
      completed_at=record.completed_at,
      failed_at=record.failed_at,
      cancelled_at=record.cancelled_at,
      expired_at=record.expired_at,
    )

  def _model_to_record(self, row: CvJob) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      user_id=row.user_id,
      status=row.status,
      created_at=row.created_at,
      updated_at=row.updated_at,
      selected_template=row.selected_template,
      selected_features=list(row.selected_features or []),
      feature_tracking=dict(row.feature_tracking or {}),
      estimated_time=row.estimated_time,
      estimated_completion_time=row.estimated_completion_time,
      generated_files=row.generated_files,
      file_warnings=list(row.file_warnings or []),
      recovery_info=row.recovery_info,
      error=row.error,
      error_code=row.error_code,
      retry_count=int(row.retry_count or 0),
      parsed_data=row.parsed_data,
      privacy_version=row.privacy_version,
      generation_started_at=row.generation_started_at,
      completed_at=row.completed_at,
      failed_at=row.failed_at,
      cancelled_at=row.cancelled_at,
      expired_at=row.expired_at,
    )


class PostgresEnrichmentRepository:
  """Read analysis documents from ``cv_enrichments``."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_enrichment(self, job_id: str) -> dict[str, dict[str, Any]]:
    async with self._session_factory() as session:
      stmt = select(CvEnrichment.kind, CvEnrichment.payload).where(CvEnrichment.job_id == job_id)
      rows = (await session.execute(stmt)).all()
      return {kind: payload for kind, payload in rows}
