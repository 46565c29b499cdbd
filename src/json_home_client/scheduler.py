"""
asyncio-based scheduler for periodic refresh.
"""
import asyncio
import logging
from typing import Optional

from .types import ScheduledHandle, ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


class AsyncioScheduledHandle(ScheduledHandle):
    """Wraps the asyncio.Task running a repeating schedule"""

    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task
        self._cancel_requested = False

    @property
    def task(self) -> "asyncio.Task[None]":
        return self._task

    def cancel(self) -> None:
        self._cancel_requested = True
        if not self._task.done():
            self._task.cancel()

    def cancelled(self) -> bool:
        return self._cancel_requested or self._task.cancelled()

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class AsyncioScheduler(Scheduler):
    """
    Runs repeating tasks on an asyncio event loop.

    The interval is measured from the completion of the previous run, so runs
    of one schedule never overlap. Errors raised by a run are logged and the
    schedule continues.

    Example:
        scheduler = AsyncioScheduler()
        handle = scheduler.schedule_repeating(0.0, 60.0, cache.refresh)
        ...
        handle.cancel()
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def schedule_repeating(
        self,
        initial_delay_seconds: float,
        interval_seconds: float,
        task: ScheduledTask,
    ) -> AsyncioScheduledHandle:
        loop = self._loop or asyncio.get_running_loop()
        runner = loop.create_task(
            self._run(initial_delay_seconds, interval_seconds, task)
        )
        return AsyncioScheduledHandle(runner)

    async def _run(
        self,
        initial_delay_seconds: float,
        interval_seconds: float,
        task: ScheduledTask,
    ) -> None:
        """Background schedule loop"""
        await asyncio.sleep(initial_delay_seconds)
        while True:
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Scheduled task {task!r} failed: {e}", exc_info=True)
            await asyncio.sleep(interval_seconds)
