"""asyncio-backed `Scheduler` and the system `Clock`."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class AsyncioScheduler:
    """Timers and background tasks on the running event loop.

    Spawned tasks are referenced until done so they cannot be collected
    mid-flight; their failures are logged, never re-raised.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Future[None]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def spawn(self, awaitable: Awaitable[None]) -> None:
        task = asyncio.ensure_future(awaitable, loop=self._get_loop())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Future[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) is done."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
