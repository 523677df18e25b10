"""Mapping from domain errors and command failures to HTTP responses.

Every error body has the same shape:

    {"detail": {"code": "EXPORT_NOT_FOUND", "message": "..."}}
"""

from __future__ import annotations

from fastapi import HTTPException, status

from custody.domain.errors import (
    ExportConflictError,
    ExportNotFoundError,
    ExportNotReadyError,
    IdempotencyKeyConflictError,
    InvalidExportTransitionError,
    LedgerContractError,
    LedgerEntryNotFoundError,
    LedgerWriteError,
    ManifestMissingError,
    RateLimitExceededError,
    VerificationTokenExpiredError,
    VerificationTokenNotFoundError,
)
from custody.domain.exceptions import CustodyError
from custody.domain.models.command import CommandResult

STATUS_BY_CODE: dict[str, int] = {
    ExportNotFoundError.code: status.HTTP_404_NOT_FOUND,
    LedgerEntryNotFoundError.code: status.HTTP_404_NOT_FOUND,
    VerificationTokenNotFoundError.code: status.HTTP_404_NOT_FOUND,
    ExportNotReadyError.code: status.HTTP_409_CONFLICT,
    InvalidExportTransitionError.code: status.HTTP_409_CONFLICT,
    ExportConflictError.code: status.HTTP_409_CONFLICT,
    IdempotencyKeyConflictError.code: status.HTTP_409_CONFLICT,
    ManifestMissingError.code: status.HTTP_409_CONFLICT,
    VerificationTokenExpiredError.code: status.HTTP_410_GONE,
    LedgerContractError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RateLimitExceededError.code: status.HTTP_429_TOO_MANY_REQUESTS,
    LedgerWriteError.code: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

VALIDATION_ERROR = "VALIDATION_ERROR"


def status_for_code(code: str) -> int:
    return STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(
    status_code: int,
    code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message},
        headers=headers,
    )


def http_error(exc: CustodyError) -> HTTPException:
    """HTTPException for a domain error raised outside the command runner."""
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return error_response(status_for_code(exc.code), exc.code, str(exc), headers)


def validation_error(message: str) -> HTTPException:
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, VALIDATION_ERROR, message
    )


def raise_for_command(result: CommandResult) -> None:
    """Raise the HTTPException for a failed command; no-op on success.

    Internal messages stay in the logs; only the public message is returned.
    """
    if result.ok or result.error is None:
        return
    raise error_response(
        status_for_code(result.error.code), result.error.code, result.error.message
    )
