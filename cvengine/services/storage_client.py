"""Object storage for generated CV artifacts (GCS, or the emulator in local development)."""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Protocol
from urllib.parse import quote, urlparse, urlunparse

from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from cvengine.config import Settings

GENERATED_CACHE_CONTROL = "public, max-age=31536000"


class ObjectStorage(Protocol):
  """What the file stage needs from object storage."""

  async def save(self, object_name: str, data: bytes, content_type: str, cache_control: str = GENERATED_CACHE_CONTROL) -> None: ...

  async def signed_url(self, object_name: str, ttl_seconds: int) -> str: ...

  async def exists(self, object_name: str) -> bool: ...

  async def delete(self, object_name: str) -> None: ...


class StorageClient:
  """Thin wrapper over GCS and emulator access for artifact upload and links."""

  def __init__(self, settings: Settings) -> None:
    self._bucket_name = settings.storage_bucket
    self._storage_host = settings.gcs_storage_host
    self._emulator_endpoint: str | None = None
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      self._emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["STORAGE_EMULATOR_HOST"] = self._emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": self._emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing, only against the emulator."""
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def save(self, object_name: str, data: bytes, content_type: str, cache_control: str = GENERATED_CACHE_CONTROL) -> None:
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    blob.cache_control = cache_control
    await run_in_threadpool(blob.upload_from_string, data, content_type)

  async def signed_url(self, object_name: str, ttl_seconds: int) -> str:
    """Return a V4 signed GET URL, or a direct media URL when running on the emulator."""
    if self._emulator_endpoint:
      return f"{self._emulator_endpoint}/v0/b/{self._bucket_name}/o/{quote(object_name, safe='')}?alt=media"
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    return await run_in_threadpool(blob.generate_signed_url, version="v4", expiration=timedelta(seconds=ttl_seconds), method="GET")

  async def exists(self, object_name: str) -> bool:
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    return bool(await run_in_threadpool(blob.exists))

  async def delete(self, object_name: str) -> None:
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    await run_in_threadpool(blob.delete)


def build_storage_client(settings: Settings) -> StorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return StorageClient(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Reduce the emulator endpoint to scheme+host+port."""
  if "://" not in raw_endpoint:
    raw_endpoint = f"http://{raw_endpoint}"
  parsed = urlparse(raw_endpoint)
  if not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
