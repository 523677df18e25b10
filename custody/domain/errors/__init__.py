"""Domain errors for Custody Core.

Provides specific exception classes for different failure scenarios.
All exceptions inherit from CustodyError.
"""

from custody.domain.errors.export import (
    ExportError,
    ExportGenerationError,
    ExportNotFoundError,
    ExportConflictError,
    ExportNotReadyError,
    InvalidExportTransitionError,
)
from custody.domain.errors.idempotency import IdempotencyKeyConflictError
from custody.domain.errors.ledger import (
    LedgerContractError,
    LedgerEntryNotFoundError,
    LedgerError,
    LedgerImmutabilityError,
    LedgerWriteError,
)
from custody.domain.errors.rate_limit import RateLimitExceededError
from custody.domain.errors.verification import (
    ManifestMissingError,
    VerificationError,
    VerificationTokenExpiredError,
    VerificationTokenNotFoundError,
)

__all__: list[str] = [
    "ExportError",
    "ExportGenerationError",
    "ExportNotFoundError",
    "ExportConflictError",
    "ExportNotReadyError",
    "IdempotencyKeyConflictError",
    "InvalidExportTransitionError",
    "LedgerContractError",
    "LedgerEntryNotFoundError",
    "LedgerError",
    "LedgerImmutabilityError",
    "LedgerWriteError",
    "ManifestMissingError",
    "RateLimitExceededError",
    "VerificationError",
    "VerificationTokenExpiredError",
    "VerificationTokenNotFoundError",
]
