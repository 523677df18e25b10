"""Export job errors for Custody Core.

Claim contention is not an error: a worker that finds no claimable job
simply receives None. These exceptions cover lookups and illegal state
transitions only.
"""

from uuid import UUID

from custody.domain.exceptions import CustodyError


class ExportError(CustodyError):
    """Base exception for export job operations."""

    code = "EXPORT_ERROR"


class ExportNotFoundError(ExportError):
    """Raised when an export job does not exist for the organization."""

    code = "EXPORT_NOT_FOUND"

    def __init__(self, export_id: UUID) -> None:
        self.export_id = export_id
        super().__init__(f"Export {export_id} not found")


class InvalidExportTransitionError(ExportError):
    """Raised when a state change is not allowed by the export state machine.

    Attributes:
        export_id: The job that was asked to transition.
        from_state: Current state value.
        to_state: Requested state value.
    """

    code = "INVALID_EXPORT_TRANSITION"

    def __init__(self, export_id: UUID, from_state: str, to_state: str) -> None:
        self.export_id = export_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Export {export_id} cannot move from {from_state} to {to_state}"
        )


class ExportNotReadyError(ExportError):
    """Raised when a download is requested for an export that is not ready."""

    code = "EXPORT_NOT_READY"

    def __init__(self, export_id: UUID, state: str) -> None:
        self.export_id = export_id
        self.state = state
        super().__init__(f"Export {export_id} is {state}, not ready")


class ExportGenerationError(ExportError):
    """Raised by payload builders when an export cannot be generated."""

    code = "EXPORT_GENERATION_FAILED"


class ExportConflictError(ExportError):
    """Raised when a job keeps changing underneath a state write."""

    code = "EXPORT_CONFLICT"
