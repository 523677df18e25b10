"""Ledger store port.

Append-only persistence for ledger entries. The port has
no update or delete operation. Appends happen inside a unit-of-work
transaction (see `unit_of_work.py`) so that an entry and the domain
mutation it documents commit or roll back together.

Implementations assign `id`, `ledger_seq`, `created_at`, `prev_hash`
and `hash` at append time, and must serialize appends per organization
so that each organization's hash chain stays linear.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.event_contracts import ResolvedEntrySpec
from custody.domain.models.ledger_entry import LedgerCategory, LedgerEntry


@dataclass(frozen=True)
class CategoryStats:
    event_count: int
    last_event_at: datetime | None


@dataclass(frozen=True)
class LedgerAggregate:
    """Ledger-derived readiness counts for one organization."""

    total_events: int = 0
    violations: int = 0
    jobs_touched: int = 0
    proof_packs: int = 0
    signoffs: int = 0
    access_changes: int = 0
    open_incidents: int = 0
    categories: dict[LedgerCategory, CategoryStats] = field(default_factory=dict)


# Events that open an incident on a work record, and the one that closes it
INCIDENT_OPEN_EVENTS: frozenset[str] = frozenset(
    {"incident.corrective_action.created", "security.incident.opened"}
)
INCIDENT_CLOSED_EVENT = "incident.closed"


class LedgerStorePort(Protocol):
    """Protocol for append-only ledger persistence."""

    async def append(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        resolved: ResolvedEntrySpec,
    ) -> LedgerEntry:
        """Append one entry to the organization's chain.

        Raises:
            LedgerWriteError: If the entry cannot be persisted.
        """
        ...

    async def get(self, organization_id: UUID, entry_id: UUID) -> LedgerEntry | None:
        ...

    async def find_by_idempotency_key(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        event_name: str,
        idempotency_key: str,
    ) -> LedgerEntry | None:
        """Find a prior entry recorded by the same command retry."""
        ...

    async def list_entries(
        self,
        organization_id: UUID,
        filters: AuditFilters,
        now: datetime,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Filtered entries, newest first."""
        ...

    async def list_for_day(self, organization_id: UUID, day: date) -> list[LedgerEntry]:
        """Entries created on a UTC day, ordered by ledger_seq ascending."""
        ...

    async def list_preceding(
        self, organization_id: UUID, before_seq: int, limit: int
    ) -> list[LedgerEntry]:
        """Up to `limit` entries before `before_seq`, newest first."""
        ...

    async def find_by_event_and_target(
        self, organization_id: UUID, event_name: str, target_id: str
    ) -> LedgerEntry | None:
        """Most recent entry with this event name and target id."""
        ...

    async def aggregate(self, organization_id: UUID) -> LedgerAggregate:
        ...

    async def list_organization_ids(self) -> list[UUID]:
        """Organizations that have at least one entry."""
        ...
