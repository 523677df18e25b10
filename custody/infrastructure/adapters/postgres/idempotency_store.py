"""PostgreSQL idempotency store.

The scope is a NULLS NOT DISTINCT unique constraint, so a system caller
without an actor id still gets exactly one row per key. `save` inserts,
or replaces a row only once it has expired; a live row is left alone and
the caller is told it lost the race.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from custody.application.ports.idempotency_store import IdempotencyStorePort
from custody.domain.models.idempotency_key import IdempotencyRecord, IdempotencyScope
from custody.infrastructure.adapters.postgres._json import dump_json, load_json


def _row_to_record(row: Mapping[str, Any]) -> IdempotencyRecord:
    return IdempotencyRecord(
        scope=IdempotencyScope(
            idempotency_key=row["idempotency_key"],
            organization_id=row["organization_id"],
            actor_id=row["actor_id"],
            endpoint=row["endpoint"],
        ),
        response_status=row["response_status"],
        response_body=load_json(row["response_body"]),
        response_headers=load_json(row["response_headers"]) or {},
        payload_hash=row["payload_hash"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class PostgresIdempotencyStore(IdempotencyStorePort):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, scope: IdempotencyScope, now: datetime
    ) -> IdempotencyRecord | None:
        result = await self._session.execute(
            text("""
                SELECT idempotency_key, organization_id, actor_id, endpoint,
                       response_status, response_body, response_headers,
                       payload_hash, created_at, expires_at
                FROM idempotency_keys
                WHERE idempotency_key = :idempotency_key
                  AND organization_id = :organization_id
                  AND actor_id IS NOT DISTINCT FROM CAST(:actor_id AS UUID)
                  AND endpoint = :endpoint
                  AND expires_at > :now
            """),
            {
                "idempotency_key": scope.idempotency_key,
                "organization_id": scope.organization_id,
                "actor_id": scope.actor_id,
                "endpoint": scope.endpoint,
                "now": now,
            },
        )
        row = result.mappings().first()
        return _row_to_record(row) if row else None

    async def save(self, record: IdempotencyRecord) -> bool:
        scope = record.scope
        result = await self._session.execute(
            text("""
                INSERT INTO idempotency_keys (
                    idempotency_key, organization_id, actor_id, endpoint,
                    response_status, response_body, response_headers,
                    payload_hash, created_at, expires_at
                )
                VALUES (
                    :idempotency_key, :organization_id, :actor_id, :endpoint,
                    :response_status, CAST(:response_body AS JSONB),
                    CAST(:response_headers AS JSONB), :payload_hash,
                    :created_at, :expires_at
                )
                ON CONFLICT ON CONSTRAINT idempotency_keys_scope_unique DO UPDATE
                SET response_status = EXCLUDED.response_status,
                    response_body = EXCLUDED.response_body,
                    response_headers = EXCLUDED.response_headers,
                    payload_hash = EXCLUDED.payload_hash,
                    created_at = EXCLUDED.created_at,
                    expires_at = EXCLUDED.expires_at
                WHERE idempotency_keys.expires_at <= EXCLUDED.created_at
                RETURNING idempotency_key
            """),
            {
                "idempotency_key": scope.idempotency_key,
                "organization_id": scope.organization_id,
                "actor_id": scope.actor_id,
                "endpoint": scope.endpoint,
                "response_status": record.response_status,
                "response_body": dump_json(record.response_body),
                "response_headers": dump_json(record.response_headers or {}),
                "payload_hash": record.payload_hash,
                "created_at": record.created_at,
                "expires_at": record.expires_at,
            },
        )
        return result.first() is not None

    async def purge_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            text("DELETE FROM idempotency_keys WHERE expires_at <= :now"),
            {"now": now},
        )
        return result.rowcount or 0
