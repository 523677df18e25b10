"""Integration tests for the idempotency store and the root repository."""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from custody.bootstrap.container import build_container
from custody.config import TEST_EXPORT_QUEUE_CONFIG, ApiConfig, LedgerConfig
from custody.domain.models.export_job import ExportType
from custody.domain.models.idempotency_key import IdempotencyRecord, IdempotencyScope
from custody.domain.models.ledger_root import LedgerRoot
from custody.infrastructure.adapters.postgres import PostgresUnitOfWork
from tests.helpers import make_context

pytestmark = pytest.mark.integration

T0 = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


def _record(scope: IdempotencyScope, body: dict, created_at: datetime) -> IdempotencyRecord:
    return IdempotencyRecord(
        scope=scope,
        response_status=202,
        response_body=body,
        payload_hash="abc",
        created_at=created_at,
        expires_at=created_at + timedelta(hours=24),
    )


class TestExportIdempotencyScope:
    async def test_same_key_from_two_actors_creates_two_exports(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        """The key is scoped per actor, so a colleague reusing it gets a new export."""
        container = build_container(
            ApiConfig(), LedgerConfig(), TEST_EXPORT_QUEUE_CONFIG, uow=pg_uow
        )
        org = uuid4()
        alice = make_context(org, user_id=uuid4())
        bob = make_context(org, user_id=uuid4())

        first = await container.exports.request_export(
            alice, ExportType.LEDGER, idempotency_key="shared-key"
        )
        second = await container.exports.request_export(
            bob, ExportType.LEDGER, idempotency_key="shared-key"
        )
        again = await container.exports.request_export(
            bob, ExportType.LEDGER, idempotency_key="shared-key"
        )

        assert first.ok and second.ok
        assert not second.replayed
        assert second.data["id"] != first.data["id"]
        assert again.replayed
        assert again.data["id"] == second.data["id"]


class TestIdempotencyStore:
    async def test_first_writer_wins(self, pg_uow: PostgresUnitOfWork) -> None:
        scope = IdempotencyScope("key-1", uuid4(), None, "POST /v1/exports")

        async with pg_uow.begin() as tx:
            first = await tx.idempotency.save(_record(scope, {"n": 1}, T0))
        async with pg_uow.begin() as tx:
            second = await tx.idempotency.save(_record(scope, {"n": 2}, T0))
            stored = await tx.idempotency.get(scope, T0 + timedelta(minutes=1))

        assert first is True
        assert second is False
        assert stored.response_body == {"n": 1}

    async def test_null_actor_scopes_collide(self, pg_uow: PostgresUnitOfWork) -> None:
        """Two records without an actor share one scope."""
        org = uuid4()
        scope = IdempotencyScope("key-1", org, None, "POST /v1/exports")
        same = IdempotencyScope("key-1", org, None, "POST /v1/exports")

        async with pg_uow.begin() as tx:
            await tx.idempotency.save(_record(scope, {"n": 1}, T0))
        async with pg_uow.begin() as tx:
            assert await tx.idempotency.save(_record(same, {"n": 2}, T0)) is False

    async def test_expired_record_is_replaced(self, pg_uow: PostgresUnitOfWork) -> None:
        scope = IdempotencyScope("key-1", uuid4(), uuid4(), "POST /v1/exports")
        later = T0 + timedelta(hours=25)

        async with pg_uow.begin() as tx:
            await tx.idempotency.save(_record(scope, {"n": 1}, T0))
        async with pg_uow.begin() as tx:
            assert await tx.idempotency.get(scope, later) is None
            assert await tx.idempotency.save(_record(scope, {"n": 2}, later)) is True
            stored = await tx.idempotency.get(scope, later)

        assert stored.response_body == {"n": 2}

    async def test_purge_expired(self, pg_uow: PostgresUnitOfWork) -> None:
        org = uuid4()
        async with pg_uow.begin() as tx:
            await tx.idempotency.save(
                _record(IdempotencyScope("old", org, None, "e"), {}, T0)
            )
            await tx.idempotency.save(
                _record(
                    IdempotencyScope("new", org, None, "e"), {}, T0 + timedelta(hours=20)
                )
            )
        async with pg_uow.begin() as tx:
            purged = await tx.idempotency.purge_expired(T0 + timedelta(hours=30))

        assert purged == 1


class TestLedgerRootRepository:
    async def test_one_root_per_day(self, pg_uow: PostgresUnitOfWork) -> None:
        org = uuid4()
        day = date(2026, 1, 14)
        root = LedgerRoot(org, day, "a" * 64, 0, None, T0)

        async with pg_uow.begin() as tx:
            added = await tx.roots.add(root)
        async with pg_uow.begin() as tx:
            again = await tx.roots.add(LedgerRoot(org, day, "b" * 64, 0, None, T0))
            stored = await tx.roots.get(org, day)

        assert added is True
        assert again is False
        assert stored.merkle_root == "a" * 64
