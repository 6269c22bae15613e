"""Test configuration: environment defaults and the asyncio backend for anyio."""

from __future__ import annotations

import os

# Settings are loaded at import time by cvengine.main.
os.environ.setdefault("CVENGINE_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("CVENGINE_PDF_ENABLED", "false")

import pytest  # noqa: E402

from tests.fakes import InMemoryStorage  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def storage() -> InMemoryStorage:
  return InMemoryStorage()
