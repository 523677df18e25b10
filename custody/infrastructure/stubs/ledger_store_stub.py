"""In-memory ledger store stub.

Implements LedgerStorePort for development and testing. Not suitable
for production: entries live only as long as the process.

The stub supports transactional rollback through `snapshot()` and
`restore()`, which the in-memory unit of work uses to discard entries
appended by a transaction that did not commit. There is no way to
remove a committed entry.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from custody.application.ports.ledger_store import (
    INCIDENT_CLOSED_EVENT,
    INCIDENT_OPEN_EVENTS,
    CategoryStats,
    LedgerAggregate,
    LedgerStorePort,
)
from custody.domain.errors.ledger import LedgerWriteError
from custody.domain.hash_utils import (
    DEFAULT_HASH_SALT,
    compute_verification_hash,
    to_json_compatible,
)
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.event_contracts import ResolvedEntrySpec
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerOutcome,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerStoreStub(LedgerStorePort):
    """In-memory, hash-chained ledger.

    Attributes:
        _entries: All committed or in-flight entries, ledger_seq order.
        _by_id: Index by entry id.
        _heads: Last hash per organization.
        _append_error: When set, every append raises it (test hook).
    """

    def __init__(
        self,
        salt: str = DEFAULT_HASH_SALT,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._salt = salt
        self._clock = clock
        self._entries: list[LedgerEntry] = []
        self._by_id: dict[UUID, LedgerEntry] = {}
        self._heads: dict[UUID, str] = {}
        self._append_error: Exception | None = None

    def fail_appends_with(self, error: Exception | None) -> None:
        """Make subsequent appends raise `error` (None restores normal behavior)."""
        self._append_error = error

    @property
    def entries(self) -> list[LedgerEntry]:
        return list(self._entries)

    def snapshot(self) -> tuple[int, dict[UUID, str]]:
        return len(self._entries), dict(self._heads)

    def restore(self, snapshot: tuple[int, dict[UUID, str]]) -> None:
        length, heads = snapshot
        for entry in self._entries[length:]:
            self._by_id.pop(entry.id, None)
        del self._entries[length:]
        self._heads = heads

    async def append(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        resolved: ResolvedEntrySpec,
    ) -> LedgerEntry:
        if self._append_error is not None:
            raise LedgerWriteError(f"Failed to append entry: {self._append_error}")

        spec = resolved.spec
        try:
            metadata = to_json_compatible(spec.metadata)
        except (TypeError, ValueError) as e:
            raise LedgerWriteError(f"Metadata is not JSON-serializable: {e}") from e
        created_at = self._clock()
        prev_hash = self._heads.get(organization_id)
        values: dict[str, Any] = {
            "id": uuid4(),
            "ledger_seq": len(self._entries) + 1,
            "organization_id": organization_id,
            "actor_id": actor_id,
            "event_name": spec.event_name,
            "category": resolved.category,
            "severity": resolved.severity,
            "outcome": resolved.outcome,
            "target_type": spec.target_type,
            "target_id": spec.target_id,
            "job_id": spec.job_id,
            "metadata": metadata,
            "created_at": created_at,
            "prev_hash": prev_hash,
            "hash": "",
        }
        draft = LedgerEntry(**values)
        values["hash"] = compute_verification_hash(
            draft.hash_record(), prev_hash, self._salt
        )
        entry = LedgerEntry(**values)

        self._entries.append(entry)
        self._by_id[entry.id] = entry
        self._heads[organization_id] = entry.hash
        return entry

    async def get(self, organization_id: UUID, entry_id: UUID) -> LedgerEntry | None:
        entry = self._by_id.get(entry_id)
        if entry is None or entry.organization_id != organization_id:
            return None
        return entry

    async def find_by_idempotency_key(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        event_name: str,
        idempotency_key: str,
    ) -> LedgerEntry | None:
        for entry in reversed(self._entries):
            if (
                entry.organization_id == organization_id
                and entry.actor_id == actor_id
                and entry.event_name == event_name
                and entry.idempotency_key == idempotency_key
            ):
                return entry
        return None

    async def list_entries(
        self,
        organization_id: UUID,
        filters: AuditFilters,
        now: datetime,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        matching = [
            entry
            for entry in reversed(self._entries)
            if entry.organization_id == organization_id and filters.matches(entry, now)
        ]
        return matching[offset : offset + limit]

    async def list_for_day(self, organization_id: UUID, day: date) -> list[LedgerEntry]:
        return [
            entry
            for entry in self._entries
            if entry.organization_id == organization_id
            and entry.created_at.astimezone(timezone.utc).date() == day
        ]

    async def list_preceding(
        self, organization_id: UUID, before_seq: int, limit: int
    ) -> list[LedgerEntry]:
        preceding = [
            entry
            for entry in reversed(self._entries)
            if entry.organization_id == organization_id and entry.ledger_seq < before_seq
        ]
        return preceding[:limit]

    async def find_by_event_and_target(
        self, organization_id: UUID, event_name: str, target_id: str
    ) -> LedgerEntry | None:
        for entry in reversed(self._entries):
            if (
                entry.organization_id == organization_id
                and entry.event_name == event_name
                and entry.target_id == target_id
            ):
                return entry
        return None

    async def aggregate(self, organization_id: UUID) -> LedgerAggregate:
        entries = [e for e in self._entries if e.organization_id == organization_id]
        jobs = {e.job_id for e in entries if e.job_id is not None}
        opened = {
            e.job_id
            for e in entries
            if e.event_name in INCIDENT_OPEN_EVENTS and e.job_id is not None
        }
        closed = {
            e.job_id
            for e in entries
            if e.event_name == INCIDENT_CLOSED_EVENT and e.job_id is not None
        }
        categories: dict[LedgerCategory, CategoryStats] = {}
        for category in LedgerCategory:
            in_category = [e for e in entries if e.category == category]
            categories[category] = CategoryStats(
                event_count=len(in_category),
                last_event_at=max((e.created_at for e in in_category), default=None),
            )
        return LedgerAggregate(
            total_events=len(entries),
            violations=sum(
                1
                for e in entries
                if e.category == LedgerCategory.GOVERNANCE
                and e.outcome == LedgerOutcome.BLOCKED
            ),
            jobs_touched=len(jobs),
            proof_packs=sum(1 for e in entries if e.event_name == "export.pack.generated"),
            signoffs=sum(1 for e in entries if e.event_name == "attestation.created"),
            access_changes=sum(
                1 for e in entries if e.category == LedgerCategory.ACCESS_REVIEW
            ),
            open_incidents=len(opened - closed),
            categories=categories,
        )

    async def list_organization_ids(self) -> list[UUID]:
        return sorted({e.organization_id for e in self._entries}, key=str)
