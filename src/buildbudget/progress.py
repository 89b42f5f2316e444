"""Synthetic progress feedback while an estimate is in flight."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

PENDING_CAP = 98.0
COMPLETE = 100.0


def next_progress(previous: float) -> float:
    """Advance the decelerating schedule by one tick.

    Large steps below 60%, small steps up to 90%, then a slow creep that never
    passes :data:`PENDING_CAP`.
    """
    if previous >= PENDING_CAP:
        return PENDING_CAP
    if previous < 60:
        increment = 12.0
    elif previous < 90:
        increment = 2.0
    else:
        increment = 0.5
    return min(PENDING_CAP, previous + increment)


class ProgressTicker:
    """Repeating timer task that feeds :func:`next_progress` values to a callback."""

    def __init__(
        self,
        interval: float,
        on_tick: Callable[[float], None],
        *,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._on_tick = on_tick
        self._sleeper = sleeper
        self._task: Optional[asyncio.Task[None]] = None
        self.value = 0.0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.value = 0.0
        self._task = asyncio.get_running_loop().create_task(self._run(), name="buildbudget-progress")

    async def _run(self) -> None:
        while True:
            await self._sleeper(self.interval)
            value = next_progress(self.value)
            if value != self.value:
                self.value = value
                self._on_tick(value)

    def stop(self) -> None:
        """Cancel the timer task; safe to call when it is not running."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            LOGGER.debug("Progress ticker stopped at %.1f%%", self.value)

    async def aclose(self) -> None:
        """Cancel the timer task and wait until it has finished."""
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.wait({task})


__all__ = ["ProgressTicker", "next_progress", "PENDING_CAP", "COMPLETE"]
