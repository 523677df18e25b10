"""Ledger errors for Custody Core.

This module provides exception classes for ledger store operations.
These exceptions are raised by LedgerStorePort implementations and by
the immutable LedgerEntry value object.
"""

from custody.domain.exceptions import CustodyError


class LedgerError(CustodyError):
    """Base exception for ledger operations."""

    code = "LEDGER_ERROR"


class LedgerWriteError(LedgerError):
    """Raised when an entry cannot be appended to the ledger.

    Fatal to the enclosing command: a mutation whose ledger entry is
    missing is undocumented, so the command runner rolls the whole
    unit of work back and reports LEDGER_WRITE_FAILED.

    Usage:
        raise LedgerWriteError("Failed to append entry: connection reset")
    """

    code = "LEDGER_WRITE_FAILED"


class LedgerImmutabilityError(LedgerError):
    """Raised on any attempt to update or delete a ledger entry.

    Corrections are new entries referencing the original id.
    """

    code = "LEDGER_IMMUTABLE"


class LedgerContractError(LedgerError):
    """Raised when an entry does not satisfy its event contract.

    Attributes:
        event_name: The event whose contract was violated.
        missing_metadata: Required metadata keys that were absent.
    """

    code = "LEDGER_CONTRACT_VIOLATION"

    def __init__(self, event_name: str, missing_metadata: list[str]) -> None:
        self.event_name = event_name
        self.missing_metadata = missing_metadata
        super().__init__(
            f"Ledger event {event_name!r} is missing required metadata: "
            f"{', '.join(missing_metadata)}"
        )


class LedgerEntryNotFoundError(LedgerError):
    """Raised when a ledger entry cannot be found for an organization."""

    code = "EVENT_NOT_FOUND"
