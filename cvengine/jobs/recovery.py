"""Failure classification and recovery hints for generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from cvengine.core.exceptions import AuthorizationError, GenerationTimeout, NotFoundError, TransientInfraError, ValidationError
from cvengine.jobs.models import RecoveryInfo

ErrorCategory = Literal["timeout", "network", "quota", "unknown"]

RETRY_DELAYS: dict[str, int] = {"quota": 900, "timeout": 300, "network": 120, "unknown": 180}

_TIMEOUT_KEYWORDS = ("timeout", "timed out")
_NETWORK_KEYWORDS = ("network", "econnreset", "connection")
_QUOTA_KEYWORDS = ("quota", "limit")
_PERMANENT_MESSAGES = ("unknown template", "invalid configuration")
_PERMANENT_TYPES = (ValidationError, AuthorizationError, NotFoundError)


@dataclass(frozen=True)
class Classification:
  """Outcome of classifying a failure."""

  category: ErrorCategory
  retryable: bool
  recommended_delay_seconds: int
  is_timeout: bool
  is_network_error: bool
  is_quota_error: bool

  @property
  def error_code(self) -> str:
    if not self.retryable:
      return "GENERATION_REJECTED"
    if self.category == "timeout":
      return "GENERATION_TIMEOUT"
    if self.category in {"network", "quota"}:
      return "TRANSIENT_INFRA"
    return "GENERATION_FAILED"

  def to_recovery_info(self, *, retry_count: int, max_retries: int) -> RecoveryInfo:
    return RecoveryInfo(
      is_timeout=self.is_timeout,
      is_network_error=self.is_network_error,
      is_quota_error=self.is_quota_error,
      category=self.category,
      retryable=self.retryable,
      recommended_retry_delay=self.recommended_delay_seconds,
      retry_count=retry_count,
      max_retries=max_retries,
    )


class ErrorClassifier(Protocol):
  def classify(self, error: BaseException) -> Classification:
    """Map a failure onto a category and retry hint."""


class KeywordErrorClassifier:
  """Classify errors by exception type first, then by case-insensitive message keywords.

  Keyword precedence is timeout, then network, then quota. ``TimeoutError`` and
  ``GenerationTimeout`` always count as timeouts even with an empty message.
  """

  def classify(self, error: BaseException) -> Classification:
    message = str(error).lower()
    retryable = not self._is_permanent(error, message)

    if isinstance(error, TimeoutError | GenerationTimeout) or any(keyword in message for keyword in _TIMEOUT_KEYWORDS):
      category: ErrorCategory = "timeout"
    elif isinstance(error, ConnectionError) or any(keyword in message for keyword in _NETWORK_KEYWORDS):
      category = "network"
    elif any(keyword in message for keyword in _QUOTA_KEYWORDS):
      category = "quota"
    elif isinstance(error, TransientInfraError):
      category = "network"
    else:
      category = "unknown"

    return Classification(
      category=category,
      retryable=retryable,
      recommended_delay_seconds=RETRY_DELAYS[category],
      is_timeout=category == "timeout",
      is_network_error=category == "network",
      is_quota_error=category == "quota",
    )

  def _is_permanent(self, error: BaseException, message: str) -> bool:
    if isinstance(error, _PERMANENT_TYPES):
      return True
    return any(marker in message for marker in _PERMANENT_MESSAGES)
