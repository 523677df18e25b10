"""Export job domain model and state machine.

State transitions:
    queued -> preparing          (claimed by a worker)
    preparing -> ready           (generation succeeded)
    preparing -> queued          (transient failure, failure_count < 3)
    preparing -> failed          (third failure: poison pill)
    queued | preparing | ready | failed -> canceled   (external cancel)
    ready | failed -> expired    (retention sweep)

Every state write bumps `version`. Stores only persist a new state if the
stored version still matches the version the caller read, so a worker
that finishes generating a job which was canceled or swept in the
meantime cannot overwrite the newer state.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from custody.domain.errors.export import InvalidExportTransitionError

# Failed attempts after which a job is parked in `failed` for good
MAX_EXPORT_FAILURES: int = 3

# Public verification tokens stop working this long after the request
VERIFICATION_TOKEN_TTL = timedelta(days=30)

EXPORT_GENERATION_FAILED = "EXPORT_GENERATION_FAILED"
EXPORT_POISON_PILL = "EXPORT_POISON_PILL"
EXPORT_STUCK_TIMEOUT = "EXPORT_STUCK_TIMEOUT"


class ExportState(Enum):
    QUEUED = "queued"
    PREPARING = "preparing"
    READY = "ready"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportState.EXPIRED, ExportState.CANCELED)


class ExportType(Enum):
    PROOF_PACK = "proof_pack"
    LEDGER = "ledger"
    EXECUTIVE_BRIEF = "executive_brief"
    CONTROLS = "controls"
    ATTESTATIONS = "attestations"


ALLOWED_TRANSITIONS: dict[ExportState, frozenset[ExportState]] = {
    ExportState.QUEUED: frozenset({ExportState.PREPARING, ExportState.CANCELED}),
    ExportState.PREPARING: frozenset(
        {
            ExportState.READY,
            ExportState.QUEUED,
            ExportState.FAILED,
            ExportState.CANCELED,
        }
    ),
    ExportState.READY: frozenset({ExportState.EXPIRED, ExportState.CANCELED}),
    ExportState.FAILED: frozenset({ExportState.EXPIRED, ExportState.CANCELED}),
    ExportState.EXPIRED: frozenset(),
    ExportState.CANCELED: frozenset(),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_verification_token() -> str:
    """Unguessable URL-safe token for public verification."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True, eq=True)
class ExportJob:
    """A request to generate an audit export for one organization.

    Attributes:
        id: Export id.
        organization_id: Owning organization.
        export_type: What is being generated.
        state: Current state.
        requested_at: When the export was queued.
        requested_by: User who asked for it.
        request_id: Correlation id of the creating request.
        work_record_id: Work record the export is scoped to, if any.
        filters: Saved audit filters the export was generated with.
        idempotency_key: Key the creating request carried, if any.
        failure_count: Failed generation attempts so far.
        verification_token: Public verification token (unique).
        started_at: When the current/last attempt was claimed.
        finished_at: When the job reached ready or failed.
        state_changed_at: When the job last changed state.
        storage_path: Artifact location once ready.
        manifest: Sealed manifest once ready.
        manifest_hash: Verification hash of the manifest.
        error_code: Last failure code.
        error_message: Last failure message.
        version: Optimistic concurrency counter.
    """

    id: UUID
    organization_id: UUID
    export_type: ExportType
    state: ExportState = ExportState.QUEUED
    requested_at: datetime = field(default_factory=_utc_now)
    requested_by: UUID | None = None
    request_id: str | None = None
    work_record_id: UUID | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None
    failure_count: int = 0
    verification_token: str = field(default_factory=generate_verification_token)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    state_changed_at: datetime | None = None
    storage_path: str | None = None
    manifest: dict[str, Any] | None = None
    manifest_hash: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if self.failure_count < 0:
            raise ValueError("failure_count cannot be negative")
        if self.requested_at.tzinfo is None:
            raise ValueError("requested_at must be timezone-aware (UTC)")
        if self.state_changed_at is None:
            object.__setattr__(self, "state_changed_at", self.requested_at)

    def __hash__(self) -> int:
        return hash((self.id, self.version))

    @classmethod
    def create(
        cls,
        organization_id: UUID,
        export_type: ExportType,
        requested_by: UUID | None = None,
        request_id: str | None = None,
        work_record_id: UUID | None = None,
        filters: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        now: datetime | None = None,
        export_id: UUID | None = None,
    ) -> ExportJob:
        """Create a new queued job."""
        return cls(
            id=export_id or uuid4(),
            organization_id=organization_id,
            export_type=export_type,
            requested_at=now or _utc_now(),
            requested_by=requested_by,
            request_id=request_id,
            work_record_id=work_record_id,
            filters=dict(filters or {}),
            idempotency_key=idempotency_key,
        )

    @property
    def verification_expires_at(self) -> datetime:
        return self.requested_at + VERIFICATION_TOKEN_TTL

    @property
    def settled_at(self) -> datetime:
        """When the job reached its current settled state."""
        return self.finished_at or self.state_changed_at or self.requested_at

    def can_transition_to(self, new_state: ExportState) -> bool:
        return new_state in ALLOWED_TRANSITIONS[self.state]

    def _transition(
        self, new_state: ExportState, now: datetime, **changes: Any
    ) -> ExportJob:
        if not self.can_transition_to(new_state):
            raise InvalidExportTransitionError(
                self.id, self.state.value, new_state.value
            )
        return replace(
            self,
            state=new_state,
            state_changed_at=now,
            version=self.version + 1,
            **changes,
        )

    def claimed(self, now: datetime | None = None) -> ExportJob:
        """queued -> preparing."""
        now = now or _utc_now()
        return self._transition(ExportState.PREPARING, now, started_at=now)

    def completed(
        self,
        storage_path: str,
        manifest: dict[str, Any],
        manifest_hash: str,
        now: datetime | None = None,
    ) -> ExportJob:
        """preparing -> ready with the sealed manifest."""
        now = now or _utc_now()
        return self._transition(
            ExportState.READY,
            now,
            finished_at=now,
            storage_path=storage_path,
            manifest=manifest,
            manifest_hash=manifest_hash,
            error_code=None,
            error_message=None,
        )

    def attempt_failed(
        self,
        error_code: str,
        error_message: str,
        now: datetime | None = None,
        max_failures: int = MAX_EXPORT_FAILURES,
    ) -> ExportJob:
        """Record a failed attempt.

        preparing -> queued while failure_count stays below max_failures,
        preparing -> failed (poison pill) once it reaches it.
        """
        now = now or _utc_now()
        failure_count = self.failure_count + 1
        if failure_count >= max_failures:
            return self._transition(
                ExportState.FAILED,
                now,
                failure_count=failure_count,
                finished_at=now,
                error_code=EXPORT_POISON_PILL,
                error_message=(
                    f"Failed {failure_count} times; last error "
                    f"{error_code}: {error_message}"
                ),
            )
        return self._transition(
            ExportState.QUEUED,
            now,
            failure_count=failure_count,
            error_code=error_code,
            error_message=error_message,
        )

    def canceled(self, now: datetime | None = None) -> ExportJob:
        return self._transition(ExportState.CANCELED, now or _utc_now())

    def expired(self, now: datetime | None = None) -> ExportJob:
        return self._transition(ExportState.EXPIRED, now or _utc_now())

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses. The token is included, it is the caller's."""
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id),
            "export_type": self.export_type.value,
            "state": self.state.value,
            "requested_at": self.requested_at.isoformat(),
            "requested_by": str(self.requested_by) if self.requested_by else None,
            "request_id": self.request_id,
            "work_record_id": (
                str(self.work_record_id) if self.work_record_id else None
            ),
            "filters": self.filters,
            "failure_count": self.failure_count,
            "verification_token": self.verification_token,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "manifest_hash": self.manifest_hash,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
