"""Asyncio debouncer for typing and paste re-synchronization."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Run a coroutine once after triggers stop arriving for `delay_seconds`.

    Each trigger restarts the timer, so a burst of triggers coalesces into
    a single run. A run that has already started is never cancelled; a
    later run waits for it to finish.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]):
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.run_count = 0
        self._handle: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        """True while a scheduled run is still waiting out its delay."""
        return self._handle is not None and not self._handle.done()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def trigger(self) -> None:
        """Schedule a run, replacing any pending one."""
        self.cancel()
        self._handle = asyncio.ensure_future(self._delayed())

    async def _delayed(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        # Started; from here on trigger() and cancel() leave this run alone
        self._handle = None
        await self._run()

    async def _run(self) -> None:
        async with self._lock:
            self.run_count += 1
            try:
                await self.callback()
            except Exception as e:
                logger.error("Debounced callback failed: %s", e)

    def cancel(self) -> None:
        """Drop the scheduled run, if it has not started yet."""
        if self._handle is not None and not self._handle.done():
            self._handle.cancel()
        self._handle = None

    async def flush(self) -> bool:
        """Run a pending callback immediately.

        Returns:
            True if a run was pending
        """
        if not self.pending:
            return False
        self.cancel()
        await self._run()
        return True
