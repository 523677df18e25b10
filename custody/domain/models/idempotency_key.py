"""Idempotency key domain model.

A stored idempotency record lets a retried request return the response
of its first execution instead of running the command again. Records are
scoped to (idempotency_key, organization_id, actor_id, endpoint), so the
same key used by two actors or on two endpoints never collides.

Expired records are inert: lookups filter them out by time. They are
never consulted after `expires_at`, whether or not they have been
physically purged.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from custody.domain.hash_utils import canonical_json

DEFAULT_IDEMPOTENCY_TTL = timedelta(hours=24)


def compute_payload_hash(payload: Any) -> str:
    """Digest of a request body, used to detect key reuse with a new body."""
    body = payload if isinstance(payload, dict) else {"body": payload}
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IdempotencyScope:
    idempotency_key: str
    organization_id: UUID
    actor_id: UUID | None
    endpoint: str

    def __post_init__(self) -> None:
        if not self.idempotency_key:
            raise ValueError("idempotency_key cannot be empty")
        if len(self.idempotency_key) > 255:
            raise ValueError("idempotency_key cannot exceed 255 characters")
        if not self.endpoint:
            raise ValueError("endpoint cannot be empty")


@dataclass(frozen=True)
class IdempotencyRecord:
    """A cached response for one idempotency scope.

    Attributes:
        scope: Key + organization + actor + endpoint.
        response_status: Status code of the first response.
        response_body: Body of the first response.
        response_headers: Headers worth replaying.
        payload_hash: Hash of the first request body, if known.
        created_at: When the record was stored.
        expires_at: After this instant the record is ignored.
    """

    scope: IdempotencyScope
    response_status: int
    response_body: Any
    response_headers: dict[str, str] = field(default_factory=dict)
    payload_hash: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.expires_at is None:
            object.__setattr__(
                self, "expires_at", self.created_at + DEFAULT_IDEMPOTENCY_TTL
            )

    def is_live(self, now: datetime) -> bool:
        assert self.expires_at is not None
        return now < self.expires_at

    def matches_payload(self, payload_hash: str | None) -> bool:
        """True unless both sides have a hash and the hashes differ."""
        if self.payload_hash is None or payload_hash is None:
            return True
        return self.payload_hash == payload_hash
