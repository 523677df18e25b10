"""Audit filter query/body model."""

from uuid import UUID

from pydantic import BaseModel, Field

from custody.domain.models.audit_filters import AuditFilters, SavedView, TimeRange
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerOutcome,
    LedgerSeverity,
)
from custody.api.models.common import DateTimeWithZ


class AuditFiltersModel(BaseModel):
    """Filters selecting ledger entries.

    An explicit category takes precedence over a saved view.
    """

    category: LedgerCategory | None = None
    job_id: UUID | None = Field(default=None, description="Work record id")
    actor_id: UUID | None = None
    severity: LedgerSeverity | None = None
    outcome: LedgerOutcome | None = None
    event_type: str | None = Field(default=None, description="Exact event name")
    time_range: TimeRange = TimeRange.ALL
    start_date: DateTimeWithZ | None = Field(
        default=None, description="Required when time_range is custom"
    )
    end_date: DateTimeWithZ | None = Field(
        default=None, description="Required when time_range is custom"
    )
    view: SavedView | None = None

    def to_filters(self) -> AuditFilters:
        """Domain filters.

        Raises:
            ValueError: If the custom time range is incomplete or inverted.
        """
        return AuditFilters(
            category=self.category,
            job_id=self.job_id,
            actor_id=self.actor_id,
            severity=self.severity,
            outcome=self.outcome,
            event_type=self.event_type,
            time_range=self.time_range,
            start_date=self.start_date,
            end_date=self.end_date,
            view=self.view,
        )
