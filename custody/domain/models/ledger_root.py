"""Daily ledger root domain model.

A LedgerRoot is the Merkle root over one organization's ledger entries
for one UTC calendar day. There is at most one root per
(organization_id, date); computing it again is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class LedgerHashRange:
    """First and last entry covered by a root."""

    first_entry_id: UUID
    last_entry_id: UUID
    first_seq: int
    last_seq: int

    def __post_init__(self) -> None:
        if self.first_seq > self.last_seq:
            raise ValueError("first_seq cannot exceed last_seq")


@dataclass(frozen=True, eq=True)
class LedgerRoot:
    organization_id: UUID
    date: date
    merkle_root: str
    event_count: int
    hash_range: LedgerHashRange | None
    computed_at: datetime

    def __post_init__(self) -> None:
        if self.event_count < 0:
            raise ValueError("event_count cannot be negative")
        if self.event_count > 0 and self.hash_range is None:
            raise ValueError("hash_range is required when event_count > 0")

    def to_dict(self) -> dict[str, Any]:
        hash_range = self.hash_range
        return {
            "organization_id": str(self.organization_id),
            "date": self.date.isoformat(),
            "merkle_root": self.merkle_root,
            "event_count": self.event_count,
            "first_entry_id": str(hash_range.first_entry_id) if hash_range else None,
            "last_entry_id": str(hash_range.last_entry_id) if hash_range else None,
            "first_seq": hash_range.first_seq if hash_range else None,
            "last_seq": hash_range.last_seq if hash_range else None,
            "computed_at": self.computed_at.isoformat(),
        }
