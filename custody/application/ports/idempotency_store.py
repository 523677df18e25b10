"""Idempotency store port.

Records are looked up by their full scope. Expired records must never be
returned, whether or not they have been purged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from custody.domain.models.idempotency_key import IdempotencyRecord, IdempotencyScope


class IdempotencyStorePort(Protocol):
    async def get(
        self, scope: IdempotencyScope, now: datetime
    ) -> IdempotencyRecord | None:
        ...

    async def save(self, record: IdempotencyRecord) -> bool:
        """Store a record, replacing an expired one with the same scope.

        A live record with the same scope is left untouched and False is
        returned; the caller lost a race with a concurrent request.
        """
        ...

    async def purge_expired(self, now: datetime) -> int:
        ...
