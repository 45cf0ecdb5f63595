"""Delayed-task helper shared by polling, scheduling and self-destruct timers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[Any]]


class DelayedTask:
    """Run ``callback`` once after ``delay`` seconds on the running loop.

    ``cancel()`` only has an effect while the task is still waiting. Once the
    callback has started it runs to completion, so a callback may safely
    cancel its own handle while rescheduling. Exceptions raised by the
    callback are logged and never escape to the event loop.
    """

    def __init__(self, delay: float, callback: Callback, *, name: Optional[str] = None) -> None:
        self.delay = max(0.0, delay)
        self.name = name or getattr(callback, "__qualname__", "delayed-task")
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        if self._fired or self._task.done():
            return False
        self._cancelled = True
        self._task.cancel()
        return True

    async def wait(self) -> None:
        """Wait until the task has finished or been cancelled."""

        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._fired = True
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Delayed task %s failed", self.name)

    def __repr__(self) -> str:
        state = "fired" if self._fired else "cancelled" if self._cancelled else "pending"
        return f"<DelayedTask {self.name} delay={self.delay} {state}>"


def schedule_later(delay: float, callback: Callback, *, name: Optional[str] = None) -> DelayedTask:
    """Shorthand for ``DelayedTask(delay, callback, name=name)``."""

    return DelayedTask(delay, callback, name=name)
