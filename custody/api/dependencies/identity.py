"""Caller identity from the upstream auth layer.

Authentication happens before requests reach this service. The gateway
forwards the authenticated identity in headers:

- X-Organization-ID: Tenant the caller acts for (required)
- X-User-ID: Acting user (required)
- X-User-Role: Role of that user within the organization (required)
- X-Request-ID: Request id; set by LoggingMiddleware when absent
"""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Header, HTTPException, Request, status

from custody.domain.models.command import CommandContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Caller:
    organization_id: UUID
    user_id: UUID
    role: str
    request_id: str
    ip: str | None = None
    user_agent: str | None = None

    def command_context(self, endpoint: str) -> CommandContext:
        return CommandContext(
            organization_id=self.organization_id,
            user_id=self.user_id,
            role=self.role,
            request_id=self.request_id,
            endpoint=endpoint,
            ip=self.ip,
            user_agent=self.user_agent,
        )


def _parse_uuid(value: str | None, header: str) -> UUID:
    log = logger.bind(component="identity")
    if not value:
        log.warning("identity_missing", header=header)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": f"{header} header is required"},
        )
    try:
        return UUID(value)
    except ValueError:
        log.warning("identity_invalid", header=header)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_IDENTITY", "message": f"{header} must be a UUID"},
        ) from None


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def get_caller(
    request: Request,
    x_organization_id: Annotated[
        str | None, Header(description="Organization the caller acts for")
    ] = None,
    x_user_id: Annotated[str | None, Header(description="Authenticated user id")] = None,
    x_user_role: Annotated[
        str | None, Header(description="Role of the user in the organization")
    ] = None,
) -> Caller:
    """Validated caller identity.

    Raises:
        HTTPException 401: A required identity header is missing.
        HTTPException 400: An id header is not a UUID.
    """
    organization_id = _parse_uuid(x_organization_id, "X-Organization-ID")
    user_id = _parse_uuid(x_user_id, "X-User-ID")
    if not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "X-User-Role header is required"},
        )
    request_id = getattr(request.state, "request_id", None) or request.headers.get(
        "X-Request-ID", ""
    )
    return Caller(
        organization_id=organization_id,
        user_id=user_id,
        role=x_user_role,
        request_id=request_id,
        ip=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
