"""Audit filters shared by ledger views, exports and readiness.

The same AuditFilters value is applied by the in-memory store (via
`matches`) and by the SQL store (which translates the same fields into
WHERE clauses), so a saved view shows the same entries everywhere.

An explicit category takes precedence over a saved view: when both are
given, the view's conditions are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerOutcome,
    LedgerSeverity,
)


class SavedView(Enum):
    REVIEW_QUEUE = "review-queue"
    INSURANCE_READY = "insurance-ready"
    GOVERNANCE_ENFORCEMENT = "governance-enforcement"
    INCIDENT_REVIEW = "incident-review"
    ACCESS_REVIEW = "access-review"


class TimeRange(Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    ALL = "all"
    CUSTOM = "custom"


_RANGE_WINDOWS: dict[TimeRange, timedelta] = {
    TimeRange.LAST_24H: timedelta(hours=24),
    TimeRange.LAST_7D: timedelta(days=7),
    TimeRange.LAST_30D: timedelta(days=30),
}

INSURANCE_READY_EVENTS: frozenset[str] = frozenset(
    {"job.completed", "control.verified", "evidence.uploaded", "attestation.created"}
)

_ELEVATED = (LedgerSeverity.MATERIAL, LedgerSeverity.CRITICAL)


@dataclass(frozen=True)
class AuditFilters:
    category: LedgerCategory | None = None
    job_id: UUID | None = None
    actor_id: UUID | None = None
    severity: LedgerSeverity | None = None
    outcome: LedgerOutcome | None = None
    event_type: str | None = None
    time_range: TimeRange = TimeRange.ALL
    start_date: datetime | None = None
    end_date: datetime | None = None
    view: SavedView | None = None

    def __post_init__(self) -> None:
        if self.time_range == TimeRange.CUSTOM and (
            self.start_date is None or self.end_date is None
        ):
            raise ValueError("custom time_range requires start_date and end_date")
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("start_date cannot be after end_date")

    @property
    def effective_view(self) -> SavedView | None:
        """The saved view to apply, or None when an explicit category wins."""
        return None if self.category is not None else self.view

    def time_bounds(self, now: datetime) -> tuple[datetime | None, datetime | None]:
        """Inclusive (start, end) bounds on created_at."""
        if self.time_range == TimeRange.CUSTOM:
            return self.start_date, self.end_date
        window = _RANGE_WINDOWS.get(self.time_range)
        if window is None:
            return None, None
        return now - window, None

    def matches(self, entry: LedgerEntry, now: datetime) -> bool:
        view = self.effective_view
        if view is not None and not view_matches(view, entry):
            return False
        if self.category is not None and entry.category != self.category:
            return False
        if self.job_id is not None and entry.job_id != self.job_id:
            return False
        if self.actor_id is not None and entry.actor_id != self.actor_id:
            return False
        if self.severity is not None and entry.severity != self.severity:
            return False
        if self.outcome is not None and entry.outcome != self.outcome:
            return False
        if self.event_type is not None and entry.event_name != self.event_type:
            return False
        start, end = self.time_bounds(now)
        if start is not None and entry.created_at < start:
            return False
        if end is not None and entry.created_at > end:
            return False
        return True

    def to_dict(self) -> dict[str, str]:
        """Non-empty filters as plain strings, for manifests and ledger metadata."""
        values = {
            "category": self.category.value if self.category else None,
            "job_id": str(self.job_id) if self.job_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "severity": self.severity.value if self.severity else None,
            "outcome": self.outcome.value if self.outcome else None,
            "event_type": self.event_type,
            "time_range": self.time_range.value,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "view": self.view.value if self.view else None,
        }
        return {k: v for k, v in values.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, str] | None) -> AuditFilters:
        data = data or {}
        return cls(
            category=LedgerCategory(data["category"]) if data.get("category") else None,
            job_id=UUID(data["job_id"]) if data.get("job_id") else None,
            actor_id=UUID(data["actor_id"]) if data.get("actor_id") else None,
            severity=LedgerSeverity(data["severity"]) if data.get("severity") else None,
            outcome=LedgerOutcome(data["outcome"]) if data.get("outcome") else None,
            event_type=data.get("event_type") or None,
            time_range=TimeRange(data.get("time_range") or "all"),
            start_date=(
                datetime.fromisoformat(data["start_date"])
                if data.get("start_date")
                else None
            ),
            end_date=(
                datetime.fromisoformat(data["end_date"]) if data.get("end_date") else None
            ),
            view=SavedView(data["view"]) if data.get("view") else None,
        )


def view_matches(view: SavedView, entry: LedgerEntry) -> bool:
    """Whether an entry belongs to a saved view."""
    if view == SavedView.REVIEW_QUEUE:
        return entry.outcome == LedgerOutcome.BLOCKED or entry.severity in _ELEVATED
    if view == SavedView.INSURANCE_READY:
        return (
            entry.category == LedgerCategory.OPERATIONS
            and entry.event_name in INSURANCE_READY_EVENTS
        )
    if view == SavedView.GOVERNANCE_ENFORCEMENT:
        return (
            entry.category == LedgerCategory.GOVERNANCE
            or entry.outcome == LedgerOutcome.BLOCKED
        )
    if view == SavedView.INCIDENT_REVIEW:
        return (
            entry.category == LedgerCategory.INCIDENT_REVIEW
            or entry.severity in _ELEVATED
        )
    return entry.category == LedgerCategory.ACCESS_REVIEW
