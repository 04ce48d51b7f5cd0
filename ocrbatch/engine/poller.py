"""Cancellable repeating task bound to an owner's lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTask:
    """
    Run `tick` every `interval` seconds on the running event loop.

    Ticks are serialized: the next sleep starts only after the previous
    tick returned. `cancel()` may be called from inside a tick; the tick
    finishes its own work and no further tick is scheduled.
    """

    def __init__(self, name: str, interval: float, tick: Callable[[], Awaitable[None]]):
        self.name = name
        self.interval = interval
        self._tick = tick
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._finishing: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation), name=self.name
        )
        logger.debug("%s started (every %.2fs)", self.name, self.interval)

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.interval)
            if generation != self._generation:
                break
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("%s tick failed", self.name)

    def cancel(self) -> None:
        """Stop scheduling ticks. Safe to call from within a tick."""
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # The running tick completes; the loop exits right after it.
            self._finishing = task
            return
        task.cancel()
        logger.debug("%s cancelled", self.name)

    async def stop(self) -> None:
        """Cancel and wait until every background task has exited."""
        tasks = [t for t in (self._task, self._finishing) if t is not None]
        self.cancel()
        self._finishing = None
        for task in tasks:
            if task is asyncio.current_task():
                continue
            with contextlib.suppress(asyncio.CancelledError):
                await task
