"""Verification routes.

GET /v1/verify/{token} is public: anyone holding an export's
verification token can check it until the token expires. It carries no
authentication and is rate-limited per client address through the
shared limiter.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from custody.api.dependencies.identity import Caller, client_ip, get_caller
from custody.api.dependencies.services import (
    get_app_container,
    get_verification_service,
)
from custody.api.errors import http_error, validation_error
from custody.api.models.common import ErrorResponse
from custody.api.models.verification import (
    ExportVerificationResponse,
    ManifestVerificationResponse,
    ManifestVerifyRequest,
)
from custody.application.services.hash_verification_service import (
    HashVerificationService,
)
from custody.bootstrap.container import CustodyContainer
from custody.domain.exceptions import CustodyError

router = APIRouter(prefix="/v1/verify", tags=["verification"])

VERIFY_RATE_LIMIT_SCOPE = "verify"


@router.post(
    "/manifest",
    response_model=ManifestVerificationResponse,
    responses={422: {"model": ErrorResponse, "description": "Malformed manifest"}},
    summary="Verify a manifest held by the client",
)
async def verify_manifest(
    request_data: ManifestVerifyRequest,
    caller: Annotated[Caller, Depends(get_caller)],
    service: Annotated[HashVerificationService, Depends(get_verification_service)],
) -> ManifestVerificationResponse:
    try:
        result = await service.verify_manifest(
            caller.organization_id,
            request_data.manifest,
            claimed_hash=request_data.manifest_hash,
            export_id=request_data.export_id,
        )
    except ValueError as e:
        raise validation_error(str(e)) from None
    except CustodyError as e:
        raise http_error(e) from None
    return ManifestVerificationResponse.from_dto(result)


@router.get(
    "/{token}",
    response_model=ExportVerificationResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown token or export not ready"},
        409: {"model": ErrorResponse, "description": "Export has no sealed manifest"},
        410: {"model": ErrorResponse, "description": "Token expired"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Verify an export by its public token",
)
async def verify_export(
    token: str,
    request: Request,
    container: Annotated[CustodyContainer, Depends(get_app_container)],
) -> ExportVerificationResponse:
    try:
        await container.rate_limits.check(
            VERIFY_RATE_LIMIT_SCOPE,
            client_ip(request) or "unknown",
            container.api_config.verify_rate_limit_per_minute,
        )
        result = await container.verification.verify_export_token(token)
    except CustodyError as e:
        raise http_error(e) from None
    return ExportVerificationResponse.from_dto(result)
