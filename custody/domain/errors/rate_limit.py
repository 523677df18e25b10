"""Rate limit errors for Custody Core.

Raised when a caller exceeds a shared rate limit. The API turns this
into a 429 response with a Retry-After header.
"""

from datetime import datetime

from custody.domain.exceptions import CustodyError


class RateLimitExceededError(CustodyError):
    """Raised when a rate limit bucket is exhausted.

    Attributes:
        key: The bucket key that was exhausted.
        limit: Configured maximum per window.
        reset_at: UTC datetime when the window frees a slot.
        retry_after_seconds: Suggested client retry delay.
    """

    code = "RATE_LIMITED"

    def __init__(
        self,
        key: str,
        limit: int,
        reset_at: datetime,
        retry_after_seconds: int,
    ) -> None:
        self.key = key
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Rate limit of {limit} exceeded for {key}; retry after "
            f"{retry_after_seconds}s"
        )
