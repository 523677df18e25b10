"""Read access to the ledger for audit views."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.domain.errors.ledger import LedgerEntryNotFoundError
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.ledger_entry import LedgerEntry

MAX_PAGE_SIZE = 500


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._clock = clock
        self._init_logger(component="ledger")

    async def list_events(
        self,
        organization_id: UUID,
        filters: AuditFilters | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Entries matching the filters, newest first."""
        if limit < 1 or offset < 0:
            raise ValueError("limit must be positive and offset non-negative")
        async with self._uow.begin() as tx:
            return await tx.ledger.list_entries(
                organization_id,
                filters or AuditFilters(),
                self._clock(),
                limit=min(limit, MAX_PAGE_SIZE),
                offset=offset,
            )

    async def get_event(self, organization_id: UUID, entry_id: UUID) -> LedgerEntry:
        async with self._uow.begin() as tx:
            entry = await tx.ledger.get(organization_id, entry_id)
        if entry is None:
            raise LedgerEntryNotFoundError(f"Ledger event {entry_id} not found")
        return entry
