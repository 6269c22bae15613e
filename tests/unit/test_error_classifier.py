from __future__ import annotations

import pytest

from cvengine.core.exceptions import AuthorizationError, GenerationTimeout, NotFoundError, TransientInfraError, ValidationError
from cvengine.jobs.recovery import RETRY_DELAYS, KeywordErrorClassifier

classifier = KeywordErrorClassifier()


@pytest.mark.parametrize(
  ("error", "category", "delay"),
  [
    (RuntimeError("Request timed out"), "timeout", 300),
    (RuntimeError("upstream TIMEOUT"), "timeout", 300),
    (RuntimeError("ECONNRESET while uploading"), "network", 120),
    (RuntimeError("network unreachable"), "network", 120),
    (RuntimeError("Quota exceeded for bucket"), "quota", 900),
    (RuntimeError("rate limit hit"), "quota", 900),
    (RuntimeError("something odd happened"), "unknown", 180),
  ],
)
def test_message_keywords_select_category_and_delay(error: Exception, category: str, delay: int) -> None:
  result = classifier.classify(error)
  assert result.category == category
  assert result.recommended_delay_seconds == delay
  assert result.retryable is True


def test_timeout_wins_over_network_and_quota() -> None:
  result = classifier.classify(RuntimeError("network quota timeout"))
  assert result.category == "timeout"
  assert result.is_timeout and not result.is_network_error and not result.is_quota_error


def test_network_wins_over_quota() -> None:
  assert classifier.classify(RuntimeError("connection limit reached")).category == "network"


def test_exception_types_classify_without_keywords() -> None:
  assert classifier.classify(TimeoutError()).category == "timeout"
  assert classifier.classify(GenerationTimeout("deadline")).error_code == "GENERATION_TIMEOUT"
  assert classifier.classify(ConnectionResetError()).category == "network"
  assert classifier.classify(TransientInfraError("bucket busy")).error_code == "TRANSIENT_INFRA"


@pytest.mark.parametrize("error", [ValidationError("bad input"), AuthorizationError("Permission denied"), NotFoundError("Parsed CV data not found"), RuntimeError("Unknown template 'x'"), RuntimeError("Invalid configuration")])
def test_permanent_errors_are_not_retryable(error: Exception) -> None:
  result = classifier.classify(error)
  assert result.retryable is False
  assert result.error_code == "GENERATION_REJECTED"


def test_recovery_info_carries_retry_bookkeeping() -> None:
  info = classifier.classify(RuntimeError("timed out")).to_recovery_info(retry_count=1, max_retries=3)
  assert info == {
    "is_timeout": True,
    "is_network_error": False,
    "is_quota_error": False,
    "category": "timeout",
    "retryable": True,
    "recommended_retry_delay": RETRY_DELAYS["timeout"],
    "retry_count": 1,
    "max_retries": 3,
  }
