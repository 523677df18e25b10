"""Domain models for Custody Core."""

from custody.domain.models.audit_filters import AuditFilters, SavedView, TimeRange
from custody.domain.models.command import (
    CommandContext,
    CommandError,
    CommandOptions,
    CommandResult,
)
from custody.domain.models.event_contracts import (
    LEDGER_EVENT_CONTRACTS,
    EventContract,
    EventContractRegistry,
)
from custody.domain.models.export_job import (
    MAX_EXPORT_FAILURES,
    ExportJob,
    ExportState,
    ExportType,
)
from custody.domain.models.idempotency_key import IdempotencyRecord, IdempotencyScope
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerEntrySpec,
    LedgerOutcome,
    LedgerSeverity,
)
from custody.domain.models.ledger_root import LedgerHashRange, LedgerRoot
from custody.domain.models.plan_tier import PlanTier
from custody.domain.models.projections import (
    CategoryProjection,
    ReadinessProjection,
    ReadinessSourceCounts,
)

__all__ = [
    "LEDGER_EVENT_CONTRACTS",
    "MAX_EXPORT_FAILURES",
    "AuditFilters",
    "CategoryProjection",
    "CommandContext",
    "CommandError",
    "CommandOptions",
    "CommandResult",
    "EventContract",
    "EventContractRegistry",
    "ExportJob",
    "ExportState",
    "ExportType",
    "IdempotencyRecord",
    "IdempotencyScope",
    "LedgerCategory",
    "LedgerEntry",
    "LedgerEntrySpec",
    "LedgerHashRange",
    "LedgerOutcome",
    "LedgerRoot",
    "LedgerSeverity",
    "PlanTier",
    "ReadinessProjection",
    "ReadinessSourceCounts",
    "SavedView",
    "TimeRange",
]
