import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cvengine.core.database import dispose_engine
from cvengine.core.firebase import initialize_firebase
from cvengine.core.logging import initialize_logging
from cvengine.services.generation import build_generation_service
from cvengine.services.storage_client import build_storage_client
from cvengine.storage.factory import _get_enrichment_source, _get_jobs_repo, _get_resume_source


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Wire the generation service at startup and drain running generations on shutdown."""
  from cvengine.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("cvengine.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except Exception:  # noqa: BLE001
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  initialize_firebase()

  storage_client = build_storage_client(settings)
  try:
    await storage_client.ensure_bucket()
    logger.info("Artifact bucket ensured: %s", storage_client.bucket_name)
  except Exception as exc:  # noqa: BLE001
    logger.warning("Failed to ensure artifact bucket at startup: %s", exc)

  # Registries and repositories are built once here and shared by every request.
  service = build_generation_service(settings, jobs_repo=_get_jobs_repo(settings), resume_source=_get_resume_source(settings), enrichment_source=_get_enrichment_source(settings), storage=storage_client)
  app.state.generation_service = service

  try:
    await service.expire_stale()
  except Exception as exc:  # noqa: BLE001
    logger.warning("Stale job sweep failed at startup: %s", exc)

  yield

  if service.runner is not None:
    await service.runner.shutdown()
  await dispose_engine()
  logger.info("Shutdown complete.")
