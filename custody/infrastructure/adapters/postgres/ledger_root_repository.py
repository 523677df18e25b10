"""PostgreSQL ledger root repository. Insert-if-absent on (organization_id, date)."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from custody.application.ports.ledger_root_repository import LedgerRootRepositoryPort
from custody.domain.models.ledger_root import LedgerHashRange, LedgerRoot


def _row_to_root(row: Mapping[str, Any]) -> LedgerRoot:
    hash_range = None
    if row["first_entry_id"] is not None:
        hash_range = LedgerHashRange(
            first_entry_id=row["first_entry_id"],
            last_entry_id=row["last_entry_id"],
            first_seq=row["first_seq"],
            last_seq=row["last_seq"],
        )
    return LedgerRoot(
        organization_id=row["organization_id"],
        date=row["date"],
        merkle_root=row["merkle_root"],
        event_count=row["event_count"],
        hash_range=hash_range,
        computed_at=row["computed_at"],
    )


class PostgresLedgerRootRepository(LedgerRootRepositoryPort):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, organization_id: UUID, day: date) -> LedgerRoot | None:
        result = await self._session.execute(
            text("""
                SELECT organization_id, date, merkle_root, event_count,
                       first_entry_id, last_entry_id, first_seq, last_seq,
                       computed_at
                FROM ledger_roots
                WHERE organization_id = :organization_id AND date = :day
            """),
            {"organization_id": organization_id, "day": day},
        )
        row = result.mappings().first()
        return _row_to_root(row) if row else None

    async def add(self, root: LedgerRoot) -> bool:
        hash_range = root.hash_range
        result = await self._session.execute(
            text("""
                INSERT INTO ledger_roots (
                    organization_id, date, merkle_root, event_count,
                    first_entry_id, last_entry_id, first_seq, last_seq,
                    computed_at
                )
                VALUES (
                    :organization_id, :day, :merkle_root, :event_count,
                    :first_entry_id, :last_entry_id, :first_seq, :last_seq,
                    :computed_at
                )
                ON CONFLICT (organization_id, date) DO NOTHING
                RETURNING organization_id
            """),
            {
                "organization_id": root.organization_id,
                "day": root.date,
                "merkle_root": root.merkle_root,
                "event_count": root.event_count,
                "first_entry_id": hash_range.first_entry_id if hash_range else None,
                "last_entry_id": hash_range.last_entry_id if hash_range else None,
                "first_seq": hash_range.first_seq if hash_range else None,
                "last_seq": hash_range.last_seq if hash_range else None,
                "computed_at": root.computed_at,
            },
        )
        return result.first() is not None
