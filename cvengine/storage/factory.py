from cvengine.config import Settings
from cvengine.storage.jobs_repo import EnrichmentSource, JobsRepository, ResumeSource
from cvengine.storage.postgres_jobs_repo import PostgresEnrichmentRepository, PostgresJobsRepository


def _require_dsn(settings: Settings) -> None:
  if not settings.pg_dsn:
    raise ValueError("CVENGINE_PG_DSN must be set to enable Postgres persistence.")


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the active jobs repository."""
  _require_dsn(settings)
  return PostgresJobsRepository()


def _get_resume_source(settings: Settings) -> ResumeSource:
  """Parsed résumés live on the job row, so the jobs repository serves them."""
  _require_dsn(settings)
  return PostgresJobsRepository()


def _get_enrichment_source(settings: Settings) -> EnrichmentSource:
  _require_dsn(settings)
  return PostgresEnrichmentRepository()
