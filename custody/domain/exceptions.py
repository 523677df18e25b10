"""Base exception classes for the Custody Core domain layer."""


class CustodyError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions MUST inherit from this class.
    This enables consistent error handling across the application.

    Subclasses may set ``code`` to a stable machine-readable identifier
    that the command runner and the API surface to callers.
    """

    code: str = "CUSTODY_ERROR"

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
