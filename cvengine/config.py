"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from cvengine.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

TASK_PROVIDERS = {"inline", "local-http"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the CV generation service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  gcp_project_id: str | None
  storage_bucket: str
  gcs_storage_host: str | None
  signed_url_ttl_seconds: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  default_template: str
  generation_deadline_seconds: float
  max_concurrent_generations: int
  max_retries: int
  pending_expiry_seconds: int
  pdf_enabled: bool
  pdf_launch_timeout_seconds: float
  pdf_content_timeout_seconds: float
  pdf_render_timeout_seconds: float
  public_profile_base_url: str
  task_service_provider: str
  base_url: str | None
  task_secret: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("CVENGINE_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CVENGINE_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CVENGINE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CVENGINE_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("CVENGINE_DEBUG"))

  log_max_bytes = _positive_int("CVENGINE_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("CVENGINE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CVENGINE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("CVENGINE_LOG_HTTP_4XX"))

  # Hard deadline for a single generation run (12 minutes by default).
  generation_deadline_seconds = _positive_float("CVENGINE_GENERATION_DEADLINE_SECONDS", "720")
  max_concurrent_generations = _positive_int("CVENGINE_MAX_CONCURRENT_GENERATIONS", "4")
  max_retries = _positive_int("CVENGINE_MAX_RETRIES", "3")
  pending_expiry_seconds = _positive_int("CVENGINE_PENDING_EXPIRY_SECONDS", "86400")

  task_service_provider = os.getenv("CVENGINE_TASK_SERVICE_PROVIDER", "inline").strip().lower()
  if task_service_provider not in TASK_PROVIDERS:
    raise ValueError(f"CVENGINE_TASK_SERVICE_PROVIDER must be one of: {', '.join(sorted(TASK_PROVIDERS))}.")

  default_template = os.getenv("CVENGINE_DEFAULT_TEMPLATE", "modern").strip().lower() or "modern"

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("CVENGINE_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("CVENGINE_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("CVENGINE_PG_CONNECT_TIMEOUT", "5"),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    storage_bucket=os.getenv("CVENGINE_STORAGE_BUCKET", "cvengine-generated"),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    signed_url_ttl_seconds=_positive_int("CVENGINE_SIGNED_URL_TTL_SECONDS", "31536000"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    default_template=default_template,
    generation_deadline_seconds=generation_deadline_seconds,
    max_concurrent_generations=max_concurrent_generations,
    max_retries=max_retries,
    pending_expiry_seconds=pending_expiry_seconds,
    pdf_enabled=_parse_bool(os.getenv("CVENGINE_PDF_ENABLED"), default=True),
    pdf_launch_timeout_seconds=_positive_float("CVENGINE_PDF_LAUNCH_TIMEOUT_SECONDS", "30"),
    pdf_content_timeout_seconds=_positive_float("CVENGINE_PDF_CONTENT_TIMEOUT_SECONDS", "45"),
    pdf_render_timeout_seconds=_positive_float("CVENGINE_PDF_RENDER_TIMEOUT_SECONDS", "60"),
    public_profile_base_url=(os.getenv("CVENGINE_PUBLIC_PROFILE_BASE_URL") or "http://localhost:8080/cv").rstrip("/"),
    task_service_provider=task_service_provider,
    base_url=_optional_str(os.getenv("CVENGINE_BASE_URL")),
    task_secret=_optional_str(os.getenv("CVENGINE_TASK_SECRET")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  debug = _parse_bool(os.getenv("CVENGINE_DEBUG"))
  pg_connect_timeout = _positive_int("CVENGINE_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("CVENGINE_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
