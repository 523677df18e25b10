"""Verification errors for Custody Core.

A hash mismatch is a verification *result*, not an exception. These
errors cover tokens that cannot be resolved at all.
"""

from datetime import datetime

from custody.domain.exceptions import CustodyError


class VerificationError(CustodyError):
    """Base exception for verification operations."""

    code = "VERIFICATION_ERROR"


class VerificationTokenNotFoundError(VerificationError):
    """Raised when a verification token is unknown or its export is not ready."""

    code = "VERIFICATION_TOKEN_INVALID"

    def __init__(self) -> None:
        super().__init__("Verification token not found or export not ready")


class VerificationTokenExpiredError(VerificationError):
    """Raised when a verification token is past its expiry.

    Attributes:
        expired_at: UTC datetime at which the token stopped being valid.
    """

    code = "VERIFICATION_TOKEN_EXPIRED"

    def __init__(self, expired_at: datetime) -> None:
        self.expired_at = expired_at
        super().__init__(f"Verification token expired at {expired_at.isoformat()}")


class ManifestMissingError(VerificationError):
    """Raised when a ready export has no sealed manifest."""

    code = "MANIFEST_MISSING"
