"""Ledger projections.

Projections are disposable, derived views over the ledger. They are
never a source of truth: dropping one and recomputing it from the ledger
always yields a valid result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from custody.domain.models.ledger_entry import LedgerCategory


@dataclass(frozen=True)
class ReadinessSourceCounts:
    """Counts that come from domain tables rather than the ledger."""

    overdue_controls: int = 0
    missing_evidence: int = 0
    unsigned_items: int = 0


@dataclass(frozen=True)
class ReadinessProjection:
    """Audit readiness summary for one organization.

    Attributes:
        total_events: All ledger entries.
        violations: Governance entries with a blocked outcome.
        jobs_touched: Distinct work records referenced by entries.
        proof_packs: export.pack.generated entries.
        signoffs: attestation.created entries.
        access_changes: Entries in the access_review category.
        open_incidents: Work records with an incident opened and not closed.
        overdue_controls: From domain tables.
        missing_evidence: From domain tables.
        unsigned_items: From domain tables.
        last_updated: When this projection was computed.
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
    last_updated: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization_id": str(self.organization_id),
            "total_events": self.total_events,
            "violations": self.violations,
            "jobs_touched": self.jobs_touched,
            "proof_packs": self.proof_packs,
            "signoffs": self.signoffs,
            "access_changes": self.access_changes,
            "open_incidents": self.open_incidents,
            "overdue_controls": self.overdue_controls,
            "missing_evidence": self.missing_evidence,
            "unsigned_items": self.unsigned_items,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class CategoryProjection:
    organization_id: UUID
    category: LedgerCategory
    event_count: int
    last_event_at: datetime | None
    last_updated: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization_id": str(self.organization_id),
            "category": self.category.value,
            "saved_view": self.category.saved_view,
            "event_count": self.event_count,
            "last_event_at": (
                self.last_event_at.isoformat() if self.last_event_at else None
            ),
            "last_updated": self.last_updated.isoformat(),
        }
