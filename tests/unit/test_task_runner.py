from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager
from dataclasses import replace
from typing import Any

import pytest

from cvengine.config import get_settings
from cvengine.core.exceptions import InvalidTransitionError
from cvengine.services.tasks.factory import get_task_enqueuer
from cvengine.services.tasks.http import LocalHttpEnqueuer
from cvengine.services.tasks.interface import GenerationTask
from cvengine.services.tasks.local import InProcessTaskRunner


def _task(job_id: str) -> GenerationTask:
  return GenerationTask(job_id=job_id, user_id="user-1", template_id="modern", features=["embed-qr-code"])


def test_task_payload_round_trip() -> None:
  task = _task("job-1")
  assert GenerationTask.from_payload(task.to_payload()) == task


def test_factory_selects_dispatch_path() -> None:
  runner = InProcessTaskRunner(lambda task, slot: asyncio.sleep(0), max_concurrency=1)
  settings = get_settings()
  assert get_task_enqueuer(replace(settings, task_service_provider="inline"), runner) is runner
  assert isinstance(get_task_enqueuer(replace(settings, task_service_provider="local-http"), runner), LocalHttpEnqueuer)


@pytest.mark.anyio
async def test_runner_bounds_concurrency() -> None:
  active = 0
  peak = 0
  release = asyncio.Event()

  async def handler(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    nonlocal active, peak
    async with slot:
      active += 1
      peak = max(peak, active)
      await release.wait()
      active -= 1

  runner = InProcessTaskRunner(handler, max_concurrency=2)
  for index in range(4):
    await runner.enqueue(_task(f"job-{index}"))
  await asyncio.sleep(0.01)

  assert peak == 2
  assert len(runner.active_jobs) == 4

  release.set()
  for index in range(4):
    await runner.wait(f"job-{index}")
  assert peak == 2
  assert runner.active_jobs == []


@pytest.mark.anyio
async def test_runner_refuses_duplicate_job_and_cancels_by_id() -> None:
  started = asyncio.Event()

  async def handler(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    async with slot:
      started.set()
      await asyncio.sleep(3600)

  runner = InProcessTaskRunner(handler, max_concurrency=1)
  await runner.enqueue(_task("job-1"))
  await started.wait()

  with pytest.raises(InvalidTransitionError):
    await runner.enqueue(_task("job-1"))

  assert runner.cancel("job-1") is True
  await runner.wait("job-1")
  assert runner.is_running("job-1") is False
  assert runner.cancel("job-1") is False


@pytest.mark.anyio
async def test_handler_crash_is_contained() -> None:
  async def handler(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    raise RuntimeError("boom")

  runner = InProcessTaskRunner(handler, max_concurrency=1)
  await runner.enqueue(_task("job-1"))
  await runner.wait("job-1")
  assert runner.active_jobs == []


@pytest.mark.anyio
async def test_shutdown_cancels_everything_and_closes_runner() -> None:
  async def handler(task: GenerationTask, slot: AbstractAsyncContextManager[Any]) -> None:
    async with slot:
      await asyncio.sleep(3600)

  runner = InProcessTaskRunner(handler, max_concurrency=2)
  await runner.enqueue(_task("job-1"))
  await runner.enqueue(_task("job-2"))
  await runner.shutdown()

  assert runner.active_jobs == []
  with pytest.raises(RuntimeError):
    await runner.enqueue(_task("job-3"))


def test_concurrency_must_be_positive() -> None:
  with pytest.raises(ValueError):
    InProcessTaskRunner(lambda task, slot: asyncio.sleep(0), max_concurrency=0)
