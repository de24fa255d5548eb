"""Cancellable one-shot delayed calls on the running event loop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class DelayedCall:
    """
    Handle for a callback scheduled to run once after a delay.

    A handle counts as fired as soon as its delay elapses, before the
    callback starts. Cancelling a fired handle is a no-op, so the callback
    may safely cancel "the live timer" even when that is itself.
    """

    def __init__(self) -> None:
        self._fired = False
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        """True until the delay elapses or the call is cancelled."""
        return not (self._fired or self._cancelled)

    def cancel(self) -> None:
        if not self.active:
            return
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()

    def fire(self) -> bool:
        """Mark the handle fired. Returns False if it was cancelled first."""
        if not self.active:
            return False
        self._fired = True
        return True


class Scheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: AsyncCallback) -> DelayedCall:
        ...


class LoopScheduler:
    """
    Scheduler backed by tasks on the running asyncio loop.

    Holds strong references to pending tasks so they are not garbage
    collected mid-flight. Exceptions escaping a callback are logged.
    """

    def __init__(self) -> None:
        self._tasks: dict[asyncio.Task, DelayedCall] = {}

    def call_later(self, delay_seconds: float, callback: AsyncCallback) -> DelayedCall:
        handle = DelayedCall()
        task = asyncio.create_task(self._run(handle, delay_seconds, callback))
        handle._task = task
        self._tasks[task] = handle
        task.add_done_callback(lambda t: self._tasks.pop(t, None))
        return handle

    @staticmethod
    async def _run(handle: DelayedCall, delay_seconds: float, callback: AsyncCallback) -> None:
        await asyncio.sleep(delay_seconds)
        if not handle.fire():
            return
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled callback failed")

    async def shutdown(self) -> None:
        """Cancel timers still waiting and let running callbacks finish."""
        for handle in list(self._tasks.values()):
            handle.cancel()
        running = [t for t in self._tasks if not t.done()]
        if running:
            await asyncio.gather(*running, return_exceptions=True)
