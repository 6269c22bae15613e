from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class GenerateRequest(BaseModel):
  """Body of the generate endpoints. Both fields are optional."""

  template_id: StrictStr | None = Field(default=None, min_length=1, description="Layout id (modern, classic, creative). Unknown ids fall back to the default.", examples=["modern"])
  features: list[StrictStr] | None = Field(default=None, max_length=32, description="Feature ids to embed. Unknown ids are ignored.", examples=[["embed-qr-code", "generate-podcast"]])
  model_config = ConfigDict(extra="forbid")


class InitiateResponse(BaseModel):
  success: bool = True
  job_id: str
  status: str
  selected_features: list[str]
  estimated_time: int
  message: str


class CancelResponse(BaseModel):
  success: bool = True
  job_id: str
  status: str
  cancelled_at: str


class SyncGenerateResponse(BaseModel):
  success: bool
  job_id: str
  status: str
  generated_cv: dict[str, Any] | None = None
  error: dict[str, Any] | None = None
