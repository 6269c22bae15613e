from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from cvengine.core.firebase import verify_id_token

# Missing credentials are reported as 401 below rather than HTTPBearer's default.
security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
  """The authenticated caller. Ownership checks compare ``uid`` with the job's user id."""

  uid: str
  email: str | None
  claims: dict[str, Any]


def _unauthorized(detail: str) -> HTTPException:
  return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_user(token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)]) -> CurrentUser:
  """Verify the Firebase ID token carried as a bearer credential."""
  if token is None or not token.credentials:
    raise _unauthorized("Not authenticated")

  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise _unauthorized("Invalid authentication credentials")

  uid = decoded_claims.get("uid")
  if not uid:
    raise _unauthorized("Invalid token claims")

  return CurrentUser(uid=uid, email=decoded_claims.get("email"), claims=decoded_claims)
