"""Periodic task runner for scheduled source syncs."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

# Configure logging to stderr
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class TaskScheduler:
    """Runs coroutine functions on a fixed interval until stopped.

    Each invocation is bounded by ``timeout``; on expiry the invocation is
    cancelled, logged, and the loop carries on with the next interval.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def task_ids(self) -> list[str]:
        return list(self._tasks)

    def run_on_schedule(
        self,
        task_id: str,
        fn: Callable[[], Awaitable[Any]],
        frequency: float,
        timeout: float,
        initial_delay: float = 0.0,
    ) -> None:
        """Start running ``fn`` every ``frequency`` seconds. Needs a running loop."""
        existing = self._tasks.pop(task_id, None)
        if existing is not None:
            logger.warning("Task %s already scheduled, replacing it", task_id)
            existing.cancel()

        self._tasks[task_id] = asyncio.get_running_loop().create_task(
            self._loop(task_id, fn, frequency, timeout, initial_delay),
            name=f"schedule:{task_id}",
        )
        logger.info("Scheduled %s every %d seconds (timeout: %d seconds)", task_id, frequency, timeout)

    async def _loop(
        self,
        task_id: str,
        fn: Callable[[], Awaitable[Any]],
        frequency: float,
        timeout: float,
        initial_delay: float,
    ) -> None:
        if initial_delay > 0:
            await asyncio.sleep(initial_delay)

        while True:
            try:
                await asyncio.wait_for(fn(), timeout=timeout)
            except TimeoutError:
                logger.warning("Task %s timed out after %d seconds", task_id, timeout)
            except Exception:
                logger.exception("Task %s failed", task_id)
            await asyncio.sleep(frequency)

    async def cancel(self, task_id: str) -> bool:
        """Stop one scheduled task. Returns False if it was not scheduled."""
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Unscheduled %s", task_id)
        return True

    async def stop(self) -> None:
        """Cancel every scheduled task."""
        tasks, self._tasks = list(self._tasks.values()), {}
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler stopped (%d tasks)", len(tasks))
