"""Bounded in-process execution of generation tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from cvengine.core.exceptions import InvalidTransitionError
from cvengine.services.tasks.interface import GenerationTask

logger = logging.getLogger(__name__)

TaskHandler = Callable[[GenerationTask, AbstractAsyncContextManager[Any]], Awaitable[object]]


class InProcessTaskRunner:
  """Run generations as asyncio tasks, at most ``max_concurrency`` at a time.

  Tasks are tracked by job id so they can be cancelled individually (cancel flow)
  or all together (shutdown). The handler receives a concurrency slot and enters it
  itself, so time spent waiting for a slot counts against any deadline the handler
  applies.
  """

  def __init__(self, handler: TaskHandler, *, max_concurrency: int) -> None:
    if max_concurrency < 1:
      raise ValueError("max_concurrency must be at least 1.")
    self._handler = handler
    self._semaphore = asyncio.Semaphore(max_concurrency)
    self._tasks: dict[str, asyncio.Task[None]] = {}
    self._closed = False

  @property
  def active_jobs(self) -> list[str]:
    return [job_id for job_id, task in self._tasks.items() if not task.done()]

  def is_running(self, job_id: str) -> bool:
    task = self._tasks.get(job_id)
    return task is not None and not task.done()

  async def enqueue(self, task: GenerationTask) -> None:
    if self._closed:
      raise RuntimeError("Task runner is shut down.")
    if self.is_running(task.job_id):
      raise InvalidTransitionError(f"Generation already running for job {task.job_id}")
    runner_task = asyncio.create_task(self._run(task), name=f"cv-generation-{task.job_id}")
    self._tasks[task.job_id] = runner_task
    runner_task.add_done_callback(lambda finished, job_id=task.job_id: self._forget(job_id, finished))
    logger.info("Generation task submitted job_id=%s active=%d", task.job_id, len(self.active_jobs))

  async def _run(self, task: GenerationTask) -> None:
    try:
      await self._handler(task, self._semaphore)
    except asyncio.CancelledError:
      logger.info("Generation task cancelled job_id=%s", task.job_id)
      raise
    except Exception:  # noqa: BLE001
      logger.error("Generation task crashed job_id=%s", task.job_id, exc_info=True)

  def _forget(self, job_id: str, finished: asyncio.Task[None]) -> None:
    if self._tasks.get(job_id) is finished:
      del self._tasks[job_id]

  def cancel(self, job_id: str) -> bool:
    """Cancel the job's task if it is still running; returns True when a task was cancelled."""
    task = self._tasks.get(job_id)
    if task is None or task.done():
      return False
    task.cancel()
    return True

  async def wait(self, job_id: str) -> None:
    """Wait until the job's task (if any) has finished."""
    task = self._tasks.get(job_id)
    if task is not None:
      await asyncio.gather(task, return_exceptions=True)

  async def shutdown(self) -> None:
    self._closed = True
    tasks = [task for task in self._tasks.values() if not task.done()]
    for task in tasks:
      task.cancel()
    if tasks:
      logger.info("Cancelling %d running generation task(s)", len(tasks))
      await asyncio.gather(*tasks, return_exceptions=True)
