"""Ledger read and verification routes."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from custody.api.dependencies.identity import Caller, get_caller
from custody.api.dependencies.services import (
    get_ledger_root_service,
    get_ledger_service,
    get_projection_service,
    get_verification_service,
)
from custody.api.errors import http_error, validation_error
from custody.api.models.common import ErrorResponse
from custody.api.models.filters import AuditFiltersModel
from custody.api.models.ledger import (
    LedgerEntryResponse,
    LedgerEventListResponse,
    ReadinessResponse,
)
from custody.api.models.verification import (
    EventVerificationResponse,
    RootVerificationResponse,
)
from custody.application.services.hash_verification_service import (
    HashVerificationService,
)
from custody.application.services.ledger_root_service import LedgerRootService
from custody.application.services.ledger_service import MAX_PAGE_SIZE, LedgerService
from custody.application.services.projection_service import ProjectionService
from custody.domain.exceptions import CustodyError
from custody.domain.models.audit_filters import SavedView, TimeRange
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerOutcome,
    LedgerSeverity,
)

router = APIRouter(prefix="/v1/ledger", tags=["ledger"])

MAX_VERIFY_DEPTH = 100


@router.get(
    "/events",
    response_model=LedgerEventListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="List ledger events",
)
async def list_events(
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[LedgerService, Depends(get_ledger_service)],
    category: LedgerCategory | None = None,
    job_id: UUID | None = None,
    actor_id: UUID | None = None,
    severity: LedgerSeverity | None = None,
    outcome: LedgerOutcome | None = None,
    event_type: str | None = None,
    time_range: TimeRange = TimeRange.ALL,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    view: SavedView | None = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> LedgerEventListResponse:
    """Entries matching the filters, newest first.

    An explicit category takes precedence over a saved view.
    """
    try:
        filters = AuditFiltersModel(
            category=category,
            job_id=job_id,
            actor_id=actor_id,
            severity=severity,
            outcome=outcome,
            event_type=event_type,
            time_range=time_range,
            start_date=start_date,
            end_date=end_date,
            view=view,
        ).to_filters()
    except ValueError as e:
        raise validation_error(str(e)) from None

    entries = await service.list_events(
        caller.organization_id, filters, limit=limit, offset=offset
    )
    return LedgerEventListResponse(
        events=[LedgerEntryResponse.from_entry(e) for e in entries],
        count=len(entries),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/events/{event_id}",
    response_model=LedgerEntryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one ledger event",
)
async def get_event(
    event_id: UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[LedgerService, Depends(get_ledger_service)],
) -> LedgerEntryResponse:
    try:
        entry = await service.get_event(caller.organization_id, event_id)
    except CustodyError as e:
        raise http_error(e) from None
    return LedgerEntryResponse.from_entry(entry)


@router.get(
    "/events/{event_id}/verify",
    response_model=EventVerificationResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Verify one event and the chain behind it",
)
async def verify_event(
    event_id: UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[HashVerificationService, Depends(get_verification_service)],
    depth: Annotated[int | None, Query(ge=0, le=MAX_VERIFY_DEPTH)] = None,
) -> EventVerificationResponse:
    """Recompute the event's hash and walk up to `depth` previous links."""
    try:
        result = await service.verify_event(caller.organization_id, event_id, depth)
    except CustodyError as e:
        raise http_error(e) from None
    return EventVerificationResponse.from_dto(result)


@router.get(
    "/roots/{day}/verify",
    response_model=RootVerificationResponse,
    summary="Recompute a daily Merkle root and compare it with the stored one",
)
async def verify_root(
    day: date,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[LedgerRootService, Depends(get_ledger_root_service)],
) -> RootVerificationResponse:
    result = await service.verify_root(caller.organization_id, day)
    return RootVerificationResponse.from_dto(result)


@router.get(
    "/readiness",
    response_model=ReadinessResponse,
    summary="Audit readiness projection",
)
async def get_readiness(
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[ProjectionService, Depends(get_projection_service)],
) -> ReadinessResponse:
    readiness = await service.get_readiness(caller.organization_id)
    categories = await service.get_category_projections(caller.organization_id)
    return ReadinessResponse.from_projections(readiness, categories)
