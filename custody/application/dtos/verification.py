"""Verification result DTOs.

A hash mismatch is reported as a result with the relevant flag set to
False, never raised. API routes convert these to Pydantic models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from custody.application.dtos.merkle import MerkleProofDTO


class ChainStatus(Enum):
    """Where an export's completion entry stands against the daily roots.

    ANCHORED: the day's root exists and the inclusion proof checks out.
    PENDING: the day's root has not been computed yet.
    MISMATCH: the root exists but the entry does not prove into it.
    MISSING: no completion entry was found in the ledger.
    """

    ANCHORED = "anchored"
    PENDING = "pending"
    MISMATCH = "mismatch"
    MISSING = "missing"


@dataclass(frozen=True)
class ExportVerificationDTO:
    export_id: UUID
    organization_id: UUID
    export_type: str
    manifest_hash: str
    computed_manifest_hash: str
    manifest_match: bool
    ledger_match: bool
    ledger_entry_id: UUID | None
    chain_status: ChainStatus
    merkle_root: str | None
    proof: MerkleProofDTO | None
    verified_at: datetime
    expires_at: datetime

    @property
    def verified(self) -> bool:
        return self.manifest_match and self.ledger_match


@dataclass(frozen=True)
class ManifestVerificationDTO:
    manifest_hash: str
    claimed_hash: str | None
    hash_match: bool | None
    export_id: UUID | None
    export_match: bool
    stored_manifest_hash: str | None
    export_state: str | None
    ledger_match: bool
    ledger_entry_id: UUID | None
    verified_at: datetime


@dataclass(frozen=True)
class EventVerificationDTO:
    """Result of checking one entry and up to N links behind it.

    Attributes:
        hash_matches: The entry's stored hash recomputes.
        prev_exists: The entry has a predecessor in the ledger.
        prev_hash_valid: prev_hash equals the predecessor's hash.
        chain_ok: Every link walked was intact.
        chain_depth_checked: Number of previous links walked.
        broken_at: Id of the first entry found broken, if any.
    """

    event_id: UUID
    ledger_seq: int
    stored_hash: str
    computed_hash: str
    hash_matches: bool
    prev_hash: str | None
    prev_exists: bool
    prev_hash_valid: bool
    chain_ok: bool
    chain_depth_checked: int
    broken_at: UUID | None
    verified_at: datetime


@dataclass(frozen=True)
class RootVerificationDTO:
    organization_id: UUID
    date: date
    stored_root: str | None
    computed_root: str | None
    event_count: int
    valid: bool
    verified_at: datetime
    altered_entry_ids: tuple[UUID, ...] = ()


@dataclass
class RootBatchResultDTO:
    """Outcome of one daily root run across organizations."""

    date: date
    computed: list[UUID] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    empty: list[UUID] = field(default_factory=list)
    failed: dict[UUID, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "computed": len(self.computed),
            "skipped": len(self.skipped),
            "empty": len(self.empty),
            "failed": {str(k): v for k, v in self.failed.items()},
        }
