"""PostgreSQL ledger store.

Appends are serialized per organization with a transaction-scoped
advisory lock, so two concurrent appends for one organization can never
read the same chain head. The lock is released when the surrounding
unit-of-work transaction commits or rolls back.

The table has no UPDATE or DELETE path here, and a trigger rejects both
at the database level.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

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
from custody.domain.models.audit_filters import (
    INSURANCE_READY_EVENTS,
    AuditFilters,
    SavedView,
)
from custody.domain.models.event_contracts import ResolvedEntrySpec
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerOutcome,
    LedgerSeverity,
)
from custody.infrastructure.adapters.postgres._json import dump_json, load_json

_COLUMNS = """
    id, ledger_seq, organization_id, actor_id, event_name, category,
    severity, outcome, target_type, target_id, job_id, metadata,
    created_at, prev_hash, hash
"""

_ELEVATED = ["material", "critical"]

_VIEW_CONDITIONS: dict[SavedView, str] = {
    SavedView.REVIEW_QUEUE: "(outcome = 'blocked' OR severity = ANY(:elevated))",
    SavedView.INSURANCE_READY: (
        "(category = 'operations' AND event_name = ANY(:insurance_events))"
    ),
    SavedView.GOVERNANCE_ENFORCEMENT: "(category = 'governance' OR outcome = 'blocked')",
    SavedView.INCIDENT_REVIEW: (
        "(category = 'incident_review' OR severity = ANY(:elevated))"
    ),
    SavedView.ACCESS_REVIEW: "(category = 'access_review')",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def row_to_entry(row: Mapping[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        ledger_seq=row["ledger_seq"],
        organization_id=row["organization_id"],
        actor_id=row["actor_id"],
        event_name=row["event_name"],
        category=LedgerCategory(row["category"]),
        severity=LedgerSeverity(row["severity"]),
        outcome=LedgerOutcome(row["outcome"]),
        target_type=row["target_type"],
        target_id=row["target_id"],
        job_id=row["job_id"],
        metadata=load_json(row["metadata"]) or {},
        created_at=row["created_at"],
        prev_hash=row["prev_hash"],
        hash=row["hash"],
    )


def filter_clause(
    filters: AuditFilters, now: datetime
) -> tuple[list[str], dict[str, Any]]:
    """Translate AuditFilters into WHERE conditions and bind parameters.

    Mirrors `AuditFilters.matches` condition for condition.
    """
    conditions: list[str] = []
    params: dict[str, Any] = {}

    view = filters.effective_view
    if view is not None:
        conditions.append(_VIEW_CONDITIONS[view])
        params["elevated"] = _ELEVATED
        params["insurance_events"] = sorted(INSURANCE_READY_EVENTS)
    if filters.category is not None:
        conditions.append("category = :category")
        params["category"] = filters.category.value
    if filters.job_id is not None:
        conditions.append("job_id = :job_id")
        params["job_id"] = filters.job_id
    if filters.actor_id is not None:
        conditions.append("actor_id = :actor_id")
        params["actor_id"] = filters.actor_id
    if filters.severity is not None:
        conditions.append("severity = :severity")
        params["severity"] = filters.severity.value
    if filters.outcome is not None:
        conditions.append("outcome = :outcome")
        params["outcome"] = filters.outcome.value
    if filters.event_type is not None:
        conditions.append("event_name = :event_type")
        params["event_type"] = filters.event_type

    start, end = filters.time_bounds(now)
    if start is not None:
        conditions.append("created_at >= :start_at")
        params["start_at"] = start
    if end is not None:
        conditions.append("created_at <= :end_at")
        params["end_at"] = end
    return conditions, params


class PostgresLedgerStore(LedgerStorePort):
    def __init__(
        self,
        session: AsyncSession,
        salt: str = DEFAULT_HASH_SALT,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session = session
        self._salt = salt
        self._clock = clock

    async def append(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        resolved: ResolvedEntrySpec,
    ) -> LedgerEntry:
        spec = resolved.spec
        try:
            metadata = to_json_compatible(spec.metadata)
        except (TypeError, ValueError) as e:
            raise LedgerWriteError(f"Metadata is not JSON-serializable: {e}") from e

        try:
            await self._session.execute(
                text("SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))"),
                {"lock_key": f"ledger:{organization_id}"},
            )
            head = await self._session.execute(
                text("""
                    SELECT hash
                    FROM ledger_entries
                    WHERE organization_id = :organization_id
                    ORDER BY ledger_seq DESC
                    LIMIT 1
                """),
                {"organization_id": organization_id},
            )
            prev_hash = head.scalar()
            seq_result = await self._session.execute(text("SELECT nextval('ledger_seq')"))
            ledger_seq = int(seq_result.scalar_one())

            values: dict[str, Any] = {
                "id": uuid4(),
                "ledger_seq": ledger_seq,
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
                "created_at": self._clock(),
                "prev_hash": prev_hash,
                "hash": "",
            }
            draft = LedgerEntry(**values)
            values["hash"] = compute_verification_hash(
                draft.hash_record(), prev_hash, self._salt
            )
            entry = LedgerEntry(**values)

            await self._session.execute(
                text(f"""
                    INSERT INTO ledger_entries ({_COLUMNS})
                    VALUES (
                        :id, :ledger_seq, :organization_id, :actor_id, :event_name,
                        :category, :severity, :outcome, :target_type, :target_id,
                        :job_id, CAST(:metadata AS JSONB), :created_at, :prev_hash, :hash
                    )
                """),
                {
                    **values,
                    "category": entry.category.value,
                    "severity": entry.severity.value,
                    "outcome": entry.outcome.value,
                    "metadata": dump_json(metadata),
                    "hash": entry.hash,
                },
            )
        except LedgerWriteError:
            raise
        except Exception as e:
            raise LedgerWriteError(f"Failed to append entry: {e}") from e
        return entry

    async def get(self, organization_id: UUID, entry_id: UUID) -> LedgerEntry | None:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE organization_id = :organization_id AND id = :id
            """),
            {"organization_id": organization_id, "id": entry_id},
        )
        row = result.mappings().first()
        return row_to_entry(row) if row else None

    async def find_by_idempotency_key(
        self,
        organization_id: UUID,
        actor_id: UUID | None,
        event_name: str,
        idempotency_key: str,
    ) -> LedgerEntry | None:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE organization_id = :organization_id
                  AND actor_id IS NOT DISTINCT FROM CAST(:actor_id AS UUID)
                  AND event_name = :event_name
                  AND metadata->>'idempotency_key' = :idempotency_key
                ORDER BY ledger_seq DESC
                LIMIT 1
            """),
            {
                "organization_id": organization_id,
                "actor_id": actor_id,
                "event_name": event_name,
                "idempotency_key": idempotency_key,
            },
        )
        row = result.mappings().first()
        return row_to_entry(row) if row else None

    async def list_entries(
        self,
        organization_id: UUID,
        filters: AuditFilters,
        now: datetime,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        conditions, params = filter_clause(filters, now)
        where = " AND ".join(["organization_id = :organization_id", *conditions])
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE {where}
                ORDER BY ledger_seq DESC
                LIMIT :limit OFFSET :offset
            """),
            {**params, "organization_id": organization_id, "limit": limit, "offset": offset},
        )
        return [row_to_entry(row) for row in result.mappings().all()]

    async def list_for_day(self, organization_id: UUID, day: date) -> list[LedgerEntry]:
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE organization_id = :organization_id
                  AND created_at >= :start_at
                  AND created_at < :end_at
                ORDER BY ledger_seq ASC
            """),
            {
                "organization_id": organization_id,
                "start_at": start,
                "end_at": start + timedelta(days=1),
            },
        )
        return [row_to_entry(row) for row in result.mappings().all()]

    async def list_preceding(
        self, organization_id: UUID, before_seq: int, limit: int
    ) -> list[LedgerEntry]:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE organization_id = :organization_id AND ledger_seq < :before_seq
                ORDER BY ledger_seq DESC
                LIMIT :limit
            """),
            {"organization_id": organization_id, "before_seq": before_seq, "limit": limit},
        )
        return [row_to_entry(row) for row in result.mappings().all()]

    async def find_by_event_and_target(
        self, organization_id: UUID, event_name: str, target_id: str
    ) -> LedgerEntry | None:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM ledger_entries
                WHERE organization_id = :organization_id
                  AND event_name = :event_name
                  AND target_id = :target_id
                ORDER BY ledger_seq DESC
                LIMIT 1
            """),
            {
                "organization_id": organization_id,
                "event_name": event_name,
                "target_id": target_id,
            },
        )
        row = result.mappings().first()
        return row_to_entry(row) if row else None

    async def aggregate(self, organization_id: UUID) -> LedgerAggregate:
        params = {
            "organization_id": organization_id,
            "open_events": sorted(INCIDENT_OPEN_EVENTS),
            "closed_event": INCIDENT_CLOSED_EVENT,
        }
        totals = await self._session.execute(
            text("""
                SELECT
                    COUNT(*) AS total_events,
                    COUNT(*) FILTER (
                        WHERE category = 'governance' AND outcome = 'blocked'
                    ) AS violations,
                    COUNT(DISTINCT job_id) AS jobs_touched,
                    COUNT(*) FILTER (
                        WHERE event_name = 'export.pack.generated'
                    ) AS proof_packs,
                    COUNT(*) FILTER (
                        WHERE event_name = 'attestation.created'
                    ) AS signoffs,
                    COUNT(*) FILTER (
                        WHERE category = 'access_review'
                    ) AS access_changes
                FROM ledger_entries
                WHERE organization_id = :organization_id
            """),
            {"organization_id": organization_id},
        )
        row = totals.mappings().one()

        incidents = await self._session.execute(
            text("""
                SELECT COUNT(*) FROM (
                    SELECT job_id
                    FROM ledger_entries
                    WHERE organization_id = :organization_id
                      AND job_id IS NOT NULL
                      AND event_name = ANY(:open_events)
                    EXCEPT
                    SELECT job_id
                    FROM ledger_entries
                    WHERE organization_id = :organization_id
                      AND job_id IS NOT NULL
                      AND event_name = :closed_event
                ) AS open_incidents
            """),
            params,
        )

        per_category = await self._session.execute(
            text("""
                SELECT category, COUNT(*) AS event_count, MAX(created_at) AS last_event_at
                FROM ledger_entries
                WHERE organization_id = :organization_id
                GROUP BY category
            """),
            {"organization_id": organization_id},
        )
        categories = {category: CategoryStats(0, None) for category in LedgerCategory}
        for stats in per_category.mappings().all():
            categories[LedgerCategory(stats["category"])] = CategoryStats(
                event_count=stats["event_count"],
                last_event_at=stats["last_event_at"],
            )

        return LedgerAggregate(
            total_events=row["total_events"],
            violations=row["violations"],
            jobs_touched=row["jobs_touched"],
            proof_packs=row["proof_packs"],
            signoffs=row["signoffs"],
            access_changes=row["access_changes"],
            open_incidents=incidents.scalar() or 0,
            categories=categories,
        )

    async def list_organization_ids(self) -> list[UUID]:
        result = await self._session.execute(
            text("SELECT DISTINCT organization_id FROM ledger_entries")
        )
        return sorted((row[0] for row in result.fetchall()), key=str)
