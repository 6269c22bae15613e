"""Timestamp helpers shared by the job layer."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
  return datetime.now(UTC)


def now_iso() -> str:
  """Return the current UTC time as an ISO-8601 string with a Z suffix."""
  return to_iso(utc_now())


def to_iso(value: datetime) -> str:
  return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso(raw: str | None) -> datetime | None:
  """Parse timestamps written by :func:`now_iso`; returns None for blanks or garbage."""
  if not raw:
    return None
  try:
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
  except ValueError:
    return None
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=UTC)
  return parsed
