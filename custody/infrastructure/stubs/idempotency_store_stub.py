"""In-memory idempotency store stub."""

from __future__ import annotations

from datetime import datetime

from custody.application.ports.idempotency_store import IdempotencyStorePort
from custody.domain.models.idempotency_key import IdempotencyRecord, IdempotencyScope


class IdempotencyStoreStub(IdempotencyStorePort):
    def __init__(self) -> None:
        self._records: dict[IdempotencyScope, IdempotencyRecord] = {}

    def snapshot(self) -> dict[IdempotencyScope, IdempotencyRecord]:
        return dict(self._records)

    def restore(self, snapshot: dict[IdempotencyScope, IdempotencyRecord]) -> None:
        self._records = dict(snapshot)

    async def get(
        self, scope: IdempotencyScope, now: datetime
    ) -> IdempotencyRecord | None:
        record = self._records.get(scope)
        if record is None or not record.is_live(now):
            return None
        return record

    async def save(self, record: IdempotencyRecord) -> bool:
        existing = self._records.get(record.scope)
        if existing is not None and existing.is_live(record.created_at):
            return False
        self._records[record.scope] = record
        return True

    async def purge_expired(self, now: datetime) -> int:
        expired = [scope for scope, r in self._records.items() if not r.is_live(now)]
        for scope in expired:
            del self._records[scope]
        return len(expired)
