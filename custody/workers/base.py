"""Shared run/stop plumbing for the background workers."""

from __future__ import annotations

import asyncio

from custody.infrastructure.observability.logging import get_logger_for_service


class StoppableWorker:
    """A worker loop that can be stopped from a signal handler.

    `_sleep` returns early when `stop()` is called, so shutdown never has
    to wait out a poll interval.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._running = False
        self._stop_event = asyncio.Event()
        self._log = get_logger_for_service(self.__class__.__name__, "workers").bind(
            worker=name
        )

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the worker to stop after the current iteration."""
        self._log.info("worker_stop_requested")
        self._running = False
        self._stop_event.set()

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            pass
