"""Projection engine: readiness and category views over the ledger.

Projections are derived, disposable and cached. Reads go through the
cache; a miss recomputes from the ledger aggregate plus the readiness
counts owned by domain tables. Every ledger write committed in this
process, user command or system event, invalidates the writing
organization's cached projections through the shared
LedgerWriteNotifier. Writes committed by another process (a separate
export worker) become visible once the cached entry's TTL lapses.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

from custody.application.ports.external import ReadinessSourcePort
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.domain.models.ledger_entry import LedgerCategory, LedgerEntry
from custody.domain.models.projections import CategoryProjection, ReadinessProjection
from custody.infrastructure.cache.projection_cache import ProjectionCache

READINESS = "readiness"
CATEGORIES = "categories"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectionService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        readiness_source: ReadinessSourcePort,
        cache: ProjectionCache | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._readiness_source = readiness_source
        self._cache = cache or ProjectionCache(clock=clock)
        self._clock = clock
        self._init_logger(component="projections")

    async def get_readiness(self, organization_id: UUID) -> ReadinessProjection:
        cached = self._cache.get(READINESS, organization_id)
        if cached is not None:
            return cached
        projection = await self._compute_readiness(organization_id)
        self._cache.set(READINESS, organization_id, projection)
        return projection

    async def get_category_projections(
        self, organization_id: UUID
    ) -> list[CategoryProjection]:
        cached = self._cache.get(CATEGORIES, organization_id)
        if cached is not None:
            return cached
        projections = await self._compute_categories(organization_id)
        self._cache.set(CATEGORIES, organization_id, projections)
        return projections

    def invalidate(self, organization_id: UUID) -> None:
        self._cache.invalidate(organization_id)

    async def on_ledger_write(self, entry: LedgerEntry) -> None:
        """Ledger write listener registered with the command runner."""
        self.invalidate(entry.organization_id)

    async def rebuild(self, organization_id: UUID) -> ReadinessProjection:
        """Drop and recompute an organization's projections."""
        log = self._log_operation("rebuild", organization_id=str(organization_id))
        self.invalidate(organization_id)
        readiness = await self.get_readiness(organization_id)
        await self.get_category_projections(organization_id)
        log.info("projections_rebuilt", total_events=readiness.total_events)
        return readiness

    async def _compute_readiness(self, organization_id: UUID) -> ReadinessProjection:
        async with self._uow.begin() as tx:
            aggregate = await tx.ledger.aggregate(organization_id)
        counts = await self._readiness_source.get_counts(organization_id)
        return ReadinessProjection(
            organization_id=organization_id,
            total_events=aggregate.total_events,
            violations=aggregate.violations,
            jobs_touched=aggregate.jobs_touched,
            proof_packs=aggregate.proof_packs,
            signoffs=aggregate.signoffs,
            access_changes=aggregate.access_changes,
            open_incidents=aggregate.open_incidents,
            overdue_controls=counts.overdue_controls,
            missing_evidence=counts.missing_evidence,
            unsigned_items=counts.unsigned_items,
            last_updated=self._clock(),
        )

    async def _compute_categories(
        self, organization_id: UUID
    ) -> list[CategoryProjection]:
        async with self._uow.begin() as tx:
            aggregate = await tx.ledger.aggregate(organization_id)
        now = self._clock()
        projections = []
        for category in LedgerCategory:
            stats = aggregate.categories.get(category)
            projections.append(
                CategoryProjection(
                    organization_id=organization_id,
                    category=category,
                    event_count=stats.event_count if stats else 0,
                    last_event_at=stats.last_event_at if stats else None,
                    last_updated=now,
                )
            )
        return projections
