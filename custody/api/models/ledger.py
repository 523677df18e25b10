"""Ledger API models."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from custody.api.models.common import DateTimeWithZ
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerOutcome,
    LedgerSeverity,
)
from custody.domain.models.projections import CategoryProjection, ReadinessProjection


class LedgerEntryResponse(BaseModel):
    id: UUID
    ledger_seq: int
    organization_id: UUID
    actor_id: UUID | None = None
    event_name: str
    category: LedgerCategory
    severity: LedgerSeverity
    outcome: LedgerOutcome
    target_type: str | None = None
    target_id: str | None = None
    job_id: UUID | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: DateTimeWithZ
    prev_hash: str | None = None
    hash: str

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryResponse":
        return cls(
            id=entry.id,
            ledger_seq=entry.ledger_seq,
            organization_id=entry.organization_id,
            actor_id=entry.actor_id,
            event_name=entry.event_name,
            category=entry.category,
            severity=entry.severity,
            outcome=entry.outcome,
            target_type=entry.target_type,
            target_id=entry.target_id,
            job_id=entry.job_id,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
            prev_hash=entry.prev_hash,
            hash=entry.hash,
        )


class LedgerEventListResponse(BaseModel):
    events: list[LedgerEntryResponse]
    count: int
    limit: int
    offset: int


class CategoryProjectionModel(BaseModel):
    category: LedgerCategory
    saved_view: str | None = None
    event_count: int
    last_event_at: DateTimeWithZ | None = None

    @classmethod
    def from_projection(cls, projection: CategoryProjection) -> "CategoryProjectionModel":
        return cls(
            category=projection.category,
            saved_view=projection.category.saved_view,
            event_count=projection.event_count,
            last_event_at=projection.last_event_at,
        )


class ReadinessResponse(BaseModel):
    """Audit readiness counters plus per-category activity.

    Served from a short-lived cache that every ledger write for the
    organization invalidates.
    """

    organization_id: UUID
    total_events: int
    violations: int
    jobs_touched: int
    proof_packs: int
    signoffs: int
    access_changes: int
    open_incidents: int
    overdue_controls: int
    missing_evidence: int
    unsigned_items: int
    last_updated: DateTimeWithZ
    categories: list[CategoryProjectionModel] = Field(default_factory=list)

    @classmethod
    def from_projections(
        cls,
        readiness: ReadinessProjection,
        categories: list[CategoryProjection],
    ) -> "ReadinessResponse":
        return cls(
            organization_id=readiness.organization_id,
            total_events=readiness.total_events,
            violations=readiness.violations,
            jobs_touched=readiness.jobs_touched,
            proof_packs=readiness.proof_packs,
            signoffs=readiness.signoffs,
            access_changes=readiness.access_changes,
            open_incidents=readiness.open_incidents,
            overdue_controls=readiness.overdue_controls,
            missing_evidence=readiness.missing_evidence,
            unsigned_items=readiness.unsigned_items,
            last_updated=readiness.last_updated,
            categories=[CategoryProjectionModel.from_projection(c) for c in categories],
        )
