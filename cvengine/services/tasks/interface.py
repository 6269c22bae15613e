from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class GenerationTask:
  """Everything a worker needs to run one generation."""

  job_id: str
  user_id: str
  template_id: str | None
  features: list[str] = field(default_factory=list)

  def to_payload(self) -> dict[str, Any]:
    return asdict(self)

  @classmethod
  def from_payload(cls, payload: dict[str, Any]) -> GenerationTask:
    return cls(job_id=payload["job_id"], user_id=payload["user_id"], template_id=payload.get("template_id"), features=list(payload.get("features") or []))


class TaskEnqueuer(Protocol):
  """Interface for handing generation work to a background executor."""

  async def enqueue(self, task: GenerationTask) -> None:
    """Submit a generation; must return without waiting for it to finish."""
    ...
