"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from cvengine.services.generation import GenerationService


def get_generation_service(request: Request) -> GenerationService:
  """Return the service wired at startup."""
  service = getattr(request.app.state, "generation_service", None)
  if service is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Generation service not ready")
  return service
