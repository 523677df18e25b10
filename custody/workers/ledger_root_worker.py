"""Daily ledger root worker.

Once a day at `root_hour_utc` it computes the Merkle root of the previous
UTC day for every organization. Computing a root is idempotent per
(organization, day), so the worker also runs once at startup to catch up
on a day missed while it was down.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from custody.application.dtos.verification import RootBatchResultDTO
from custody.application.services.ledger_root_service import LedgerRootService
from custody.workers.base import StoppableWorker


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def previous_utc_day(now: datetime) -> date:
    return (now.astimezone(timezone.utc) - timedelta(days=1)).date()


def next_run_at(now: datetime, root_hour_utc: int) -> datetime:
    """The next time of day `root_hour_utc:00` UTC strictly after `now`."""
    now = now.astimezone(timezone.utc)
    candidate = datetime.combine(now.date(), time(hour=root_hour_utc), tzinfo=timezone.utc)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class LedgerRootWorker(StoppableWorker):
    def __init__(
        self,
        roots: LedgerRootService,
        root_hour_utc: int = 2,
        catch_up: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        super().__init__("ledger-roots")
        self._roots = roots
        self._root_hour = root_hour_utc
        self._catch_up = catch_up
        self._clock = clock
        self.last_result: RootBatchResultDTO | None = None

    async def run_once(self, day: date | None = None) -> RootBatchResultDTO:
        """Compute roots for `day` (default: yesterday, UTC)."""
        day = day or previous_utc_day(self._clock())
        result = await self._roots.compute_daily_roots(day)
        self.last_result = result
        self._log.info("ledger_root_batch_finished", **result.to_dict())
        return result

    async def run(self) -> None:
        self._running = True
        self._log.info("ledger_root_worker_started", root_hour_utc=self._root_hour)
        try:
            if self._catch_up:
                await self._run_safely()
            while self._running:
                now = self._clock()
                wait = (next_run_at(now, self._root_hour) - now).total_seconds()
                await self._sleep(wait)
                if not self._running:
                    break
                await self._run_safely()
        finally:
            self._running = False
            self._log.info("ledger_root_worker_stopped")

    async def _run_safely(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            self._log.exception("ledger_root_batch_failed", error_type=type(e).__name__)
