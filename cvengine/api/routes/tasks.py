from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from cvengine.api.deps import get_generation_service
from cvengine.config import Settings, get_settings
from cvengine.services.generation import GenerationService
from cvengine.services.tasks.interface import GenerationTask

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class TaskPayload(BaseModel):
  job_id: str
  user_id: str
  template_id: str | None = None
  features: list[str] = Field(default_factory=list)


@router.post("/process-job", status_code=status.HTTP_202_ACCEPTED)
async def process_job_task(
  payload: TaskPayload, settings: Annotated[Settings, Depends(get_settings)], service: Annotated[GenerationService, Depends(get_generation_service)], authorization: str | None = Header(default=None)
) -> dict[str, str]:
  """Accept a dispatched generation and run it on the in-process runner."""
  # Internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  if not secrets.compare_digest(authorization or "", f"Bearer {settings.task_secret}"):
    logger.warning("Unauthorized access attempt to /process-job")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")

  if service.runner is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task runner not available.")

  logger.info("Received task for job %s", payload.job_id)
  await service.runner.enqueue(GenerationTask.from_payload(payload.model_dump()))
  return {"status": "accepted"}
