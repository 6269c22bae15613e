from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cvengine.core.database import Base

_NOW_ISO = text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


class CvJob(Base):
  __tablename__ = "cv_jobs"
  __table_args__ = (Index("ix_cv_jobs_status_created", "status", "created_at"),)

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False)
  selected_template: Mapped[str | None] = mapped_column(String, nullable=True)
  selected_features: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
  feature_tracking: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  estimated_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
  estimated_completion_time: Mapped[str | None] = mapped_column(String, nullable=True)
  generated_files: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  file_warnings: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
  recovery_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_code: Mapped[str | None] = mapped_column(String, nullable=True)
  retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  parsed_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  privacy_version: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_NOW_ISO)
  updated_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_NOW_ISO)
  generation_started_at: Mapped[str | None] = mapped_column(String, nullable=True)
  completed_at: Mapped[str | None] = mapped_column(String, nullable=True)
  failed_at: Mapped[str | None] = mapped_column(String, nullable=True)
  cancelled_at: Mapped[str | None] = mapped_column(String, nullable=True)
  expired_at: Mapped[str | None] = mapped_column(String, nullable=True)


class CvEnrichment(Base):
  """Analysis documents written by upstream stages (ats, personality, podcast, video)."""

  __tablename__ = "cv_enrichments"
  __table_args__ = (UniqueConstraint("job_id", "kind", name="ux_cv_enrichments_job_kind"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("cv_jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
  kind: Mapped[str] = mapped_column(String, nullable=False)
  payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_NOW_ISO)
