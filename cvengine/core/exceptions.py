"""Domain error taxonomy and the FastAPI handlers that map it to HTTP responses."""

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class CVEngineError(Exception):
  """Base class for errors raised by the generation core."""

  retryable = True
  status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(CVEngineError):
  """Malformed input. Never retryable."""

  retryable = False
  status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransitionError(ValidationError):
  """The job is not in a state that permits the requested operation."""

  status_code = status.HTTP_409_CONFLICT


class AuthorizationError(CVEngineError):
  """The caller does not own the job."""

  retryable = False
  status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(CVEngineError):
  """The job or one of its required documents is missing."""

  retryable = False
  status_code = status.HTTP_404_NOT_FOUND


class GenerationTimeout(CVEngineError):
  """The hard generation deadline elapsed."""


class TransientInfraError(CVEngineError):
  """A storage, network or quota failure that is expected to clear on its own."""


class FilePersistenceError(CVEngineError):
  """The mandatory HTML artifact could not be stored."""


class RenderDegraded(CVEngineError):
  """A non-fatal file stage failure. Recorded on the job, never raised out of the pipeline."""


class UnknownGenerationError(CVEngineError):
  """Anything the pipeline raised that has no more specific category."""


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    return f"{type(value).__name__}: {error_message}" if error_message else type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if isinstance(scrubbed.get("ctx"), dict):
      scrubbed["ctx"] = {key: value for key, value in scrubbed["ctx"].items() if key != "input"}
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch-all for unhandled errors; the body never carries internals."""
  logger = logging.getLogger("uvicorn.error")
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors without leaking payloads."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions, masking 5xx details."""
  from cvengine.config import get_settings

  settings = get_settings()
  request_id = _request_id(request)
  logger = logging.getLogger("uvicorn.error")
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id), headers=exc.headers)

  if settings.log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=exc.headers)


async def domain_exception_handler(request: Request, exc: CVEngineError) -> JSONResponse:
  """Map the domain taxonomy onto HTTP status codes."""
  from cvengine.config import get_settings

  request_id = _request_id(request)
  logger = logging.getLogger("uvicorn.error")
  if exc.status_code >= 500:
    logger.error("Generation failure request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  if get_settings().log_http_4xx:
    logger.warning("Domain error request_id=%s path=%s error_type=%s detail=%s", request_id, request.url.path, type(exc).__name__, exc)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(str(exc), request_id=request_id))
