import logging
from typing import Any

from fastapi import APIRouter, Depends

from cvengine.api.deps import get_generation_service
from cvengine.api.models import CancelResponse, GenerateRequest, InitiateResponse, SyncGenerateResponse
from cvengine.core.security import CurrentUser, get_current_user
from cvengine.services.generation import GenerationService

router = APIRouter()
logger = logging.getLogger("cvengine.api.routes.generation")


@router.post("/{job_id}/generate", response_model=InitiateResponse, status_code=202)
async def generate_cv(  # noqa: B008
  job_id: str,
  request: GenerateRequest | None = None,
  current_user: CurrentUser = Depends(get_current_user),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> InitiateResponse:
  """Start a background generation for a parsed résumé."""
  request = request or GenerateRequest()
  payload = await service.initiate(job_id, request.template_id, request.features, current_user.uid)
  return InitiateResponse(**payload)


@router.post("/{job_id}/generate/sync", response_model=SyncGenerateResponse)
async def generate_cv_sync(  # noqa: B008
  job_id: str,
  request: GenerateRequest | None = None,
  current_user: CurrentUser = Depends(get_current_user),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> SyncGenerateResponse:
  """Run the generation inside the request and return its outcome."""
  request = request or GenerateRequest()
  payload = await service.generate_sync(job_id, request.template_id, request.features, current_user.uid)
  return SyncGenerateResponse(**payload)


@router.get("/{job_id}/status")
async def get_generation_status(  # noqa: B008
  job_id: str,
  current_user: CurrentUser = Depends(get_current_user),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> dict[str, Any]:
  """Report progress, results or failure details depending on the job state."""
  return await service.get_status(job_id, current_user.uid)


@router.post("/{job_id}/retry", response_model=InitiateResponse, status_code=202)
async def retry_generation(  # noqa: B008
  job_id: str,
  current_user: CurrentUser = Depends(get_current_user),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> InitiateResponse:
  """Re-run a failed generation with its original selection."""
  payload = await service.retry(job_id, current_user.uid)
  return InitiateResponse(**payload)


@router.post("/{job_id}/cancel", response_model=CancelResponse)
async def cancel_generation(  # noqa: B008
  job_id: str,
  current_user: CurrentUser = Depends(get_current_user),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> CancelResponse:
  """Cancel a pending or running generation."""
  payload = await service.cancel(job_id, current_user.uid)
  return CancelResponse(**payload)
