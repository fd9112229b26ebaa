"""Fixed-interval asyncio scheduler driving the price simulation."""

from __future__ import annotations

import asyncio
from typing import Callable

from papertrade.core.logging import get_logger

log = get_logger(__name__)


class TickScheduler:
    """Calls *callback* every *interval_seconds* until stopped.

    The first call happens one interval after :meth:`start`. A failing
    callback is logged and the loop keeps running.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        interval_seconds: float,
        name: str = "price_ticker",
    ) -> None:
        if interval_seconds <= 0:
            msg = f"interval_seconds must be positive, got {interval_seconds}"
            raise ValueError(msg)
        self._callback = callback
        self._interval = interval_seconds
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        """Number of callbacks completed since the scheduler was created."""
        return self._ticks

    async def start(self) -> None:
        """Start the loop on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        log.info("scheduler_started", name=self._name, interval_sec=self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call twice."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        log.info("scheduler_stopped", name=self._name, ticks=self._ticks)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

            try:
                self._callback()
                self._ticks += 1
            except Exception as exc:
                log.error("tick_failed", name=self._name, error=str(exc))
