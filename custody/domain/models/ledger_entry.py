"""Ledger entry domain model.

A LedgerEntry is one immutable, hash-chained record of a material
action. Entries are created once by the ledger store at append time and
never modified afterwards; there is no update or delete path on any
port. A correction is a new entry whose metadata carries
`corrects_entry_id` pointing at the original.

Each organization has its own hash chain: `prev_hash` is the `hash` of
the organization's previous entry (None for its first entry). Entries
are globally ordered by `ledger_seq`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from custody.domain.hash_utils import (
    DEFAULT_HASH_SALT,
    compute_verification_hash,
    ledger_hash_record,
)
from custody.domain.primitives.prevent_delete import DeletePreventionMixin

# Metadata key linking a correction entry to the entry it corrects
CORRECTS_ENTRY_ID_KEY = "corrects_entry_id"

# Metadata key holding the command's idempotency key
IDEMPOTENCY_KEY_METADATA = "idempotency_key"

# Metadata key holding the command's return value, replayed on retries
COMMAND_RESULT_METADATA = "command_result"

# Metadata key holding the hash of the request body that ran the command
PAYLOAD_HASH_METADATA = "payload_hash"


class LedgerCategory(Enum):
    """Closed set of ledger categories.

    Each category belongs to at most one saved audit view ("tab").
    """

    GOVERNANCE = "governance"
    OPERATIONS = "operations"
    ACCESS = "access"
    REVIEW_QUEUE = "review_queue"
    INCIDENT_REVIEW = "incident_review"
    ATTESTATIONS = "attestations"
    ACCESS_REVIEW = "access_review"
    SYSTEM = "system"

    @property
    def saved_view(self) -> str | None:
        """The saved audit view this category is shown under, if any."""
        return _CATEGORY_VIEWS.get(self)


_CATEGORY_VIEWS: dict[LedgerCategory, str] = {
    LedgerCategory.GOVERNANCE: "governance-enforcement",
    LedgerCategory.REVIEW_QUEUE: "review-queue",
    LedgerCategory.INCIDENT_REVIEW: "incident-review",
    LedgerCategory.ACCESS: "access-review",
    LedgerCategory.ACCESS_REVIEW: "access-review",
    LedgerCategory.OPERATIONS: "insurance-ready",
    LedgerCategory.ATTESTATIONS: "insurance-ready",
}


class LedgerSeverity(Enum):
    INFO = "info"
    MATERIAL = "material"
    CRITICAL = "critical"


class LedgerOutcome(Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class LedgerEntrySpec:
    """What a caller asks the ledger to record.

    The ledger store turns a spec into a LedgerEntry by assigning id,
    ledger_seq, created_at, prev_hash and hash.

    Category, severity and outcome may be left as None when the event has
    a registered contract; the contract's defaults are then used.
    """

    event_name: str
    target_type: str | None = None
    target_id: str | None = None
    job_id: UUID | None = None
    category: LedgerCategory | None = None
    severity: LedgerSeverity | None = None
    outcome: LedgerOutcome | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.event_name:
            raise ValueError("event_name cannot be empty")

    def with_metadata(self, **extra: Any) -> LedgerEntrySpec:
        """Return a copy with extra metadata merged over the existing keys."""
        merged = dict(self.metadata)
        merged.update(extra)
        return LedgerEntrySpec(
            event_name=self.event_name,
            target_type=self.target_type,
            target_id=self.target_id,
            job_id=self.job_id,
            category=self.category,
            severity=self.severity,
            outcome=self.outcome,
            metadata=merged,
        )


@dataclass(frozen=True, eq=True)
class LedgerEntry(DeletePreventionMixin):
    """An immutable, hash-chained ledger record.

    Attributes:
        id: Unique entry id.
        ledger_seq: Global monotonic sequence, the Merkle ordering key.
        organization_id: Owning organization (tenant).
        actor_id: User who caused the event, None for system events.
        event_name: Dotted event name, e.g. "export.proof_pack.completed".
        category: Closed category.
        severity: Closed severity.
        outcome: Closed outcome.
        target_type: Kind of entity the event concerns.
        target_id: Id of that entity.
        job_id: Work record the event belongs to, if any.
        metadata: Opaque event data (read-only view).
        created_at: Append time (UTC).
        prev_hash: Hash of the organization's previous entry.
        hash: Verification hash of this entry.
    """

    id: UUID
    ledger_seq: int
    organization_id: UUID
    actor_id: UUID | None
    event_name: str
    category: LedgerCategory
    severity: LedgerSeverity
    outcome: LedgerOutcome
    target_type: str | None
    target_id: str | None
    job_id: UUID | None
    metadata: Mapping[str, Any]
    created_at: datetime
    prev_hash: str | None
    hash: str

    def __post_init__(self) -> None:
        if self.ledger_seq < 1:
            raise ValueError("ledger_seq must be >= 1")
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware (UTC)")
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def idempotency_key(self) -> str | None:
        return self.metadata.get(IDEMPOTENCY_KEY_METADATA)

    @property
    def command_result(self) -> Any:
        return self.metadata.get(COMMAND_RESULT_METADATA)

    @property
    def payload_hash(self) -> str | None:
        return self.metadata.get(PAYLOAD_HASH_METADATA)

    @property
    def corrects_entry_id(self) -> str | None:
        return self.metadata.get(CORRECTS_ENTRY_ID_KEY)

    def hash_record(self) -> dict[str, Any]:
        """The fixed-order record this entry's hash covers."""
        return ledger_hash_record(
            ledger_seq=self.ledger_seq,
            organization_id=self.organization_id,
            actor_id=self.actor_id,
            event_name=self.event_name,
            category=self.category.value,
            severity=self.severity.value,
            outcome=self.outcome.value,
            target_type=self.target_type,
            target_id=self.target_id,
            job_id=self.job_id,
            created_at=self.created_at,
            metadata=self.metadata,
        )

    def recompute_hash(self, salt: str = DEFAULT_HASH_SALT) -> str:
        return compute_verification_hash(self.hash_record(), self.prev_hash, salt)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and exports."""
        return {
            "id": str(self.id),
            "ledger_seq": self.ledger_seq,
            "organization_id": str(self.organization_id),
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "event_name": self.event_name,
            "category": self.category.value,
            "severity": self.severity.value,
            "outcome": self.outcome.value,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "job_id": str(self.job_id) if self.job_id else None,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "prev_hash": self.prev_hash,
            "hash": self.hash,
        }
