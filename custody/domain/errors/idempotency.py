"""Idempotency errors for Custody Core."""

from custody.domain.exceptions import CustodyError


class IdempotencyKeyConflictError(CustodyError):
    """Raised when an idempotency key is replayed with a different body.

    The key scope (key, organization, actor, endpoint) matched a stored
    response, but the stored payload hash differs from the hash of the
    incoming request body. Replaying would return a response for a
    different request, so the request is rejected instead.

    Attributes:
        idempotency_key: The reused key.
        endpoint: The endpoint the key was first used against.
    """

    code = "IDEMPOTENCY_KEY_REUSED"

    def __init__(self, idempotency_key: str, endpoint: str) -> None:
        self.idempotency_key = idempotency_key
        self.endpoint = endpoint
        super().__init__(
            f"Idempotency key {idempotency_key!r} was already used on "
            f"{endpoint} with a different request body"
        )
