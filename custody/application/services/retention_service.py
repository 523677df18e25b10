"""Export retention sweep.

Ready exports are kept for their organization's plan-tier window after
they finished; failed exports for seven days. Past that, the job becomes
`expired`, an `export.expired` entry is recorded and the artifact is
deleted. Expired idempotency records are purged in the same pass.

The sweep pages through every job old enough to be past the shortest
window, so jobs of long-retention organizations never hold back the
expiry of anyone else's.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from custody.application.ports.external import (
    ArtifactStorePort,
    OrganizationDirectoryPort,
)
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.export_claim_coordinator import append_system_event
from custody.application.services.ledger_write_notifier import LedgerWriteNotifier
from custody.domain.models.export_job import ExportJob, ExportState
from custody.domain.models.plan_tier import FAILED_EXPORT_RETENTION, PlanTier


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# No ready export can expire before the shortest plan-tier window
SHORTEST_READY_RETENTION: timedelta = min(tier.retention for tier in PlanTier)


@dataclass(frozen=True)
class RetentionResult:
    expired: int
    artifacts_deleted: int
    idempotency_purged: int


class RetentionService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        directory: OrganizationDirectoryPort,
        artifacts: ArtifactStorePort,
        clock: Callable[[], datetime] = _utc_now,
        batch_size: int = 500,
        notifier: LedgerWriteNotifier | None = None,
    ) -> None:
        self._uow = uow
        self._directory = directory
        self._artifacts = artifacts
        self._clock = clock
        self._batch_size = batch_size
        self._notifier = notifier or LedgerWriteNotifier()
        self._init_logger(component="retention")

    async def sweep(self) -> RetentionResult:
        log = self._log_operation("sweep")
        now = self._clock()
        tiers: dict[UUID, PlanTier] = {}
        expired = 0
        deleted = 0

        for state, shortest in (
            (ExportState.READY, SHORTEST_READY_RETENTION),
            (ExportState.FAILED, FAILED_EXPORT_RETENTION),
        ):
            async for job in self._candidates(state, now - shortest):
                if job.organization_id not in tiers:
                    tiers[job.organization_id] = await self._directory.get_plan_tier(
                        job.organization_id
                    )
                tier = tiers[job.organization_id]
                if not self._is_past_retention(job, tier, now):
                    continue

                try:
                    applied = await self._expire(job, tier, now)
                except Exception as e:
                    log.error(
                        "export_expire_failed",
                        export_id=str(job.id),
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
                if not applied:
                    continue
                expired += 1
                if job.storage_path:
                    await self._artifacts.delete(job.storage_path)
                    deleted += 1

        async with self._uow.begin() as tx:
            purged = await tx.idempotency.purge_expired(now)

        result = RetentionResult(
            expired=expired, artifacts_deleted=deleted, idempotency_purged=purged
        )
        log.info(
            "retention_sweep_completed",
            expired=expired,
            artifacts_deleted=deleted,
            idempotency_purged=purged,
        )
        return result

    async def _candidates(
        self, state: ExportState, settled_by: datetime
    ) -> AsyncIterator[ExportJob]:
        """Every job in `state` settled by the cutoff, one page at a time."""
        after: tuple[datetime, UUID] | None = None
        while True:
            async with self._uow.begin() as tx:
                page = await tx.exports.list_settled(
                    state, settled_by, after=after, limit=self._batch_size
                )
            for job in page:
                yield job
            if len(page) < self._batch_size:
                return
            after = (page[-1].settled_at, page[-1].id)

    @staticmethod
    def _is_past_retention(job: ExportJob, tier: PlanTier, now: datetime) -> bool:
        window = tier.retention if job.state == ExportState.READY else FAILED_EXPORT_RETENTION
        return now >= job.settled_at + window

    async def _expire(self, job: ExportJob, tier: PlanTier, now: datetime) -> bool:
        async with self._uow.begin() as tx:
            expired = job.expired(now)
            if not await tx.exports.save(expired, job.version):
                return False
            entry = await append_system_event(
                tx,
                expired,
                "export.expired",
                {"previous_state": job.state.value, "plan_tier": tier.value},
            )
        await self._notifier.notify([entry])
        return True
