"""Domain models for CV generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, NotRequired, TypedDict

JobStatus = Literal["pending", "generating", "completed", "failed", "cancelled", "expired"]
FeatureStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled", "expired"})

# failed -> generating is reserved for the retry flow.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
  "pending": frozenset({"generating", "cancelled", "expired", "failed"}),
  "generating": frozenset({"completed", "failed", "cancelled"}),
  "failed": frozenset({"generating"}),
  "completed": frozenset(),
  "cancelled": frozenset(),
  "expired": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
  """Return True when the state machine permits ``current -> target``."""
  return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class FeatureTrackingEntry(TypedDict):
  status: FeatureStatus
  progress: int
  estimated_time_remaining: int
  current_step: str
  error: NotRequired[str]


class RecoveryInfo(TypedDict):
  is_timeout: bool
  is_network_error: bool
  is_quota_error: bool
  category: str
  retryable: bool
  recommended_retry_delay: int
  retry_count: int
  max_retries: int


class GeneratedFiles(TypedDict):
  html_url: str
  pdf_url: str
  docx_url: str


@dataclass
class JobRecord:
  """Represents a CV generation job and its progress."""

  job_id: str
  user_id: str
  status: JobStatus
  created_at: str
  updated_at: str
  selected_template: str | None = None
  selected_features: list[str] = field(default_factory=list)
  feature_tracking: dict[str, FeatureTrackingEntry] = field(default_factory=dict)
  estimated_time: int | None = None
  estimated_completion_time: str | None = None
  generated_files: GeneratedFiles | None = None
  file_warnings: list[str] = field(default_factory=list)
  recovery_info: RecoveryInfo | None = None
  error: str | None = None
  error_code: str | None = None
  retry_count: int = 0
  parsed_data: dict[str, Any] | None = None
  privacy_version: dict[str, Any] | None = None
  generation_started_at: str | None = None
  completed_at: str | None = None
  failed_at: str | None = None
  cancelled_at: str | None = None
  expired_at: str | None = None
