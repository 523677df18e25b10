"""Export API routes.

Creating and canceling an export are commands: the job change and its
ledger entry commit together. Both accept an Idempotency-Key header; a
retry with the same key and body returns the first response, a retry
with the same key and a different body is rejected with 409. A replayed
response has the first response's body and headers, plus an
Idempotent-Replayed: true header.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response, status

from custody.api.dependencies.identity import Caller, get_caller
from custody.api.dependencies.services import (
    get_export_metrics_service,
    get_export_service,
)
from custody.api.errors import http_error, raise_for_command, validation_error
from custody.api.models.common import ErrorResponse
from custody.api.models.exports import (
    ExportCreateRequest,
    ExportJobResponse,
    ExportMetricsResponse,
)
from custody.application.services.export_metrics_service import ExportMetricsService
from custody.application.services.export_service import ExportService
from custody.domain.exceptions import CustodyError
from custody.domain.models.command import CommandResult

router = APIRouter(prefix="/v1/exports", tags=["exports"])

MAX_IDEMPOTENCY_KEY_LENGTH = 255
REPLAYED_HEADER = "Idempotent-Replayed"

IdempotencyKey = Annotated[
    str | None,
    Header(
        alias="Idempotency-Key",
        description="Client-chosen key making retries of this request safe",
    ),
]


def _check_idempotency_key(key: str | None) -> str | None:
    if key is not None and not 0 < len(key) <= MAX_IDEMPOTENCY_KEY_LENGTH:
        raise validation_error(
            f"Idempotency-Key must be 1-{MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        )
    return key


def _job_response(result: CommandResult, response: Response) -> ExportJobResponse:
    raise_for_command(result)
    response.headers.update(result.headers)
    if result.replayed:
        response.headers[REPLAYED_HEADER] = "true"
    return ExportJobResponse(**result.data, ledger_entry_id=result.ledger_entry_id)


@router.get(
    "/metrics",
    response_model=ExportMetricsResponse,
    summary="Export queue metrics",
    dependencies=[Depends(get_caller)],
)
async def get_export_metrics(
    service: Annotated[ExportMetricsService, Depends(get_export_metrics_service)],
) -> ExportMetricsResponse:
    """Queue depth by state, average time in state and failure rate by type.

    Computing the snapshot also refreshes the Prometheus gauges.
    """
    snapshot = await service.snapshot()
    return ExportMetricsResponse(
        queue_depth=snapshot.queue_depth,
        avg_time_in_state_seconds=snapshot.avg_time_in_state_seconds,
        failure_rate=snapshot.failure_rate,
        computed_at=snapshot.computed_at,
    )


@router.post(
    "",
    response_model=ExportJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        409: {"model": ErrorResponse, "description": "Idempotency key reused"},
        422: {"model": ErrorResponse, "description": "Invalid filters"},
        429: {"model": ErrorResponse, "description": "Too many export requests"},
    },
    summary="Request an export",
)
async def create_export(
    request_data: ExportCreateRequest,
    response: Response,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[ExportService, Depends(get_export_service)],
    idempotency_key: IdempotencyKey = None,
) -> ExportJobResponse:
    """Queue an export. A worker picks it up; poll GET /v1/exports/{id}."""
    key = _check_idempotency_key(idempotency_key)
    try:
        filters = request_data.filters.to_filters() if request_data.filters else None
    except ValueError as e:
        raise validation_error(str(e)) from None

    try:
        result = await service.request_export(
            caller.command_context("POST /v1/exports"),
            request_data.export_type,
            filters=filters,
            work_record_id=request_data.work_record_id,
            idempotency_key=key,
        )
    except CustodyError as e:
        raise http_error(e) from None
    return _job_response(result, response)


@router.get(
    "/{export_id}",
    response_model=ExportJobResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get export state",
)
async def get_export(
    export_id: UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[ExportService, Depends(get_export_service)],
) -> ExportJobResponse:
    try:
        job = await service.get_export(caller.organization_id, export_id)
    except CustodyError as e:
        raise http_error(e) from None
    return ExportJobResponse(**job.to_dict())


@router.get(
    "/{export_id}/download",
    response_class=Response,
    responses={
        200: {"content": {"application/zip": {}}},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Export is not ready"},
    },
    summary="Download a ready export",
)
async def download_export(
    export_id: UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[ExportService, Depends(get_export_service)],
) -> Response:
    try:
        job, data = await service.download(caller.organization_id, export_id)
    except CustodyError as e:
        raise http_error(e) from None
    filename = f"{job.export_type.value}-{job.id}.zip"
    return Response(
        content=data,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Manifest-Hash": job.manifest_hash or "",
        },
    )


@router.post(
    "/{export_id}/cancel",
    response_model=ExportJobResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Export cannot be canceled"},
    },
    summary="Cancel an export",
)
async def cancel_export(
    export_id: UUID,
    response: Response,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[ExportService, Depends(get_export_service)],
    idempotency_key: IdempotencyKey = None,
) -> ExportJobResponse:
    """Cancel a queued, preparing, ready or failed export.

    A ready export's archive is deleted. A worker still generating a
    canceled job discards its result.
    """
    key = _check_idempotency_key(idempotency_key)
    try:
        result = await service.cancel_export(
            caller.command_context("POST /v1/exports/{export_id}/cancel"),
            export_id,
            idempotency_key=key,
        )
    except CustodyError as e:
        raise http_error(e) from None
    return _job_response(result, response)
