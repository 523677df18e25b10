"""Export API request/response models."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from custody.api.models.common import DateTimeWithZ
from custody.api.models.filters import AuditFiltersModel
from custody.domain.models.export_job import ExportState, ExportType


class ExportCreateRequest(BaseModel):
    export_type: ExportType = Field(..., description="What to generate")
    filters: AuditFiltersModel | None = Field(
        default=None, description="Ledger filters the export is generated with"
    )
    work_record_id: UUID | None = Field(
        default=None, description="Scope the export to one work record"
    )


class ExportJobResponse(BaseModel):
    """An export job as the requesting organization sees it.

    Attributes:
        verification_token: Hand this to third parties; it lets anyone
            verify the export at GET /v1/verify/{token} until it expires.
        ledger_entry_id: Entry recorded for the command that returned
            this job (create or cancel), if any.
    """

    id: UUID
    organization_id: UUID
    export_type: ExportType
    state: ExportState
    requested_at: DateTimeWithZ
    requested_by: UUID | None = None
    request_id: str | None = None
    work_record_id: UUID | None = None
    filters: dict[str, Any] = Field(default_factory=dict)
    failure_count: int = 0
    verification_token: str
    started_at: DateTimeWithZ | None = None
    finished_at: DateTimeWithZ | None = None
    manifest_hash: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    previous_state: ExportState | None = None
    ledger_entry_id: UUID | None = None


class ExportMetricsResponse(BaseModel):
    queue_depth: dict[str, int] = Field(..., description="Jobs per state")
    avg_time_in_state_seconds: dict[str, float] = Field(
        ..., description="Mean seconds jobs have spent in their current state"
    )
    failure_rate: dict[str, float] = Field(
        ..., description="Poison pills over settled jobs, per export type"
    )
    computed_at: DateTimeWithZ
