"""Export requests, lookups, downloads and cancellation.

Requests and cancellations are commands: the job change and its ledger
entry commit together through the command runner. Generation happens
later, in the claim coordinator.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from custody.application.ports.external import ArtifactStorePort
from custody.application.ports.unit_of_work import TransactionPort, UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.command_runner import CommandRunner
from custody.application.services.rate_limit_service import RateLimitService
from custody.domain.errors.export import (
    ExportConflictError,
    ExportNotFoundError,
    ExportNotReadyError,
)
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.command import CommandContext, CommandOptions, CommandResult
from custody.domain.models.export_job import ExportJob, ExportState, ExportType
from custody.domain.models.idempotency_key import compute_payload_hash
from custody.domain.models.ledger_entry import LedgerEntrySpec

EXPORT_RATE_LIMIT_SCOPE = "exports"

# A worker may bump the version between our read and our write
_CANCEL_ATTEMPTS = 3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _export_location(data: dict[str, Any]) -> dict[str, str]:
    return {"Location": f"/v1/exports/{data['id']}"}


class ExportService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        runner: CommandRunner,
        artifacts: ArtifactStorePort,
        rate_limits: RateLimitService | None = None,
        create_rate_limit_per_minute: int = 30,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._runner = runner
        self._artifacts = artifacts
        self._rate_limits = rate_limits
        self._create_rate_limit = create_rate_limit_per_minute
        self._clock = clock
        self._init_logger(component="exports")

    async def request_export(
        self,
        context: CommandContext,
        export_type: ExportType,
        filters: AuditFilters | None = None,
        work_record_id: UUID | None = None,
        idempotency_key: str | None = None,
    ) -> CommandResult:
        """Queue a new export job.

        Raises:
            RateLimitExceededError: If the organization requested too many
                exports in the last minute.
        """
        if self._rate_limits is not None:
            await self._rate_limits.check(
                EXPORT_RATE_LIMIT_SCOPE,
                str(context.organization_id),
                self._create_rate_limit,
            )

        filter_values = (filters or AuditFilters()).to_dict()
        payload = {
            "export_type": export_type.value,
            "filters": filter_values,
            "work_record_id": str(work_record_id) if work_record_id else None,
        }

        export_id = uuid4()

        async def mutate(tx: TransactionPort) -> dict[str, Any]:
            job = ExportJob.create(
                organization_id=context.organization_id,
                export_type=export_type,
                requested_by=context.user_id,
                request_id=context.request_id,
                work_record_id=work_record_id,
                filters=filter_values,
                idempotency_key=idempotency_key,
                now=self._clock(),
                export_id=export_id,
            )
            await tx.exports.add(job)
            return job.to_dict()

        result = await self._runner.run_command(
            context,
            CommandOptions(
                idempotency_key=idempotency_key,
                payload_hash=compute_payload_hash(payload),
                response_status=202,
                response_headers=_export_location,
            ),
            mutate,
            LedgerEntrySpec(
                event_name="export.requested",
                target_type="export",
                target_id=str(export_id),
                job_id=work_record_id,
                metadata={
                    "export_id": str(export_id),
                    "export_type": export_type.value,
                    "filters": filter_values,
                },
            ),
        )
        if result.ok and not result.replayed:
            self._log_operation(
                "request_export", organization_id=str(context.organization_id)
            ).info("export_requested", export_id=result.data["id"])
        return result

    async def get_export(self, organization_id: UUID, export_id: UUID) -> ExportJob:
        async with self._uow.begin() as tx:
            job = await tx.exports.get_for_organization(organization_id, export_id)
        if job is None:
            raise ExportNotFoundError(export_id)
        return job

    async def download(
        self, organization_id: UUID, export_id: UUID
    ) -> tuple[ExportJob, bytes]:
        """The archive of a ready export.

        Raises:
            ExportNotFoundError: Unknown export.
            ExportNotReadyError: Export is not in the ready state, or its
                artifact is gone.
        """
        job = await self.get_export(organization_id, export_id)
        if job.state != ExportState.READY or job.storage_path is None:
            raise ExportNotReadyError(export_id, job.state.value)
        data = await self._artifacts.get(job.storage_path)
        if data is None:
            self._log_operation("download", export_id=str(export_id)).error(
                "export_artifact_missing", storage_path=job.storage_path
            )
            raise ExportNotReadyError(export_id, job.state.value)
        return job, data

    async def cancel_export(
        self,
        context: CommandContext,
        export_id: UUID,
        idempotency_key: str | None = None,
    ) -> CommandResult:
        """Cancel a queued, preparing, ready or failed export.

        The artifact of a ready export is deleted after the cancel commits.
        """
        removed: dict[str, str] = {}

        async def mutate(tx: TransactionPort) -> dict[str, Any]:
            for _ in range(_CANCEL_ATTEMPTS):
                job = await tx.exports.get_for_organization(
                    context.organization_id, export_id
                )
                if job is None:
                    raise ExportNotFoundError(export_id)
                canceled = job.canceled(self._clock())
                if await tx.exports.save(canceled, job.version):
                    if job.storage_path:
                        removed["path"] = job.storage_path
                    data = canceled.to_dict()
                    data["previous_state"] = job.state.value
                    return data
            raise ExportConflictError(f"Export {export_id} changed during cancel")

        def refine(data: dict[str, Any], spec: LedgerEntrySpec) -> LedgerEntrySpec:
            return spec.with_metadata(previous_state=data["previous_state"])

        result = await self._runner.run_command(
            context,
            CommandOptions(idempotency_key=idempotency_key),
            mutate,
            LedgerEntrySpec(
                event_name="export.canceled",
                target_type="export",
                target_id=str(export_id),
                metadata={"export_id": str(export_id), "previous_state": "unknown"},
            ),
            refine_spec=refine,
        )

        if result.ok and "path" in removed:
            await self._artifacts.delete(removed["path"])
        if result.ok and not result.replayed:
            self._log_operation(
                "cancel_export", organization_id=str(context.organization_id)
            ).info("export_canceled", export_id=str(export_id))
        return result
