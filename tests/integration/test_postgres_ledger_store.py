"""Integration tests for the PostgreSQL ledger store and its trigger."""

import asyncio
from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from custody.domain.errors.ledger import LedgerWriteError
from custody.domain.hash_utils import DEFAULT_HASH_SALT
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.event_contracts import EventContractRegistry
from custody.domain.models.ledger_entry import LedgerCategory, LedgerEntry, LedgerEntrySpec
from custody.infrastructure.adapters.postgres import PostgresUnitOfWork

pytestmark = pytest.mark.integration


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _append(
    uow: PostgresUnitOfWork, org_id: UUID, event: str = "job.created", **kwargs
) -> LedgerEntry:
    spec = EventContractRegistry.resolve(LedgerEntrySpec(event, **kwargs))
    async with uow.begin() as tx:
        return await tx.ledger.append(org_id, None, spec)


class TestHashChain:
    async def test_entries_chain_per_organization(self, pg_uow: PostgresUnitOfWork) -> None:
        org, other = uuid4(), uuid4()
        first = await _append(pg_uow, org)
        await _append(pg_uow, other)
        second = await _append(pg_uow, org)

        assert first.prev_hash is None
        assert second.prev_hash == first.hash
        assert second.ledger_seq > first.ledger_seq
        assert second.recompute_hash(DEFAULT_HASH_SALT) == second.hash

    async def test_concurrent_appends_keep_one_chain(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        """The per-organization lock serializes appends: no forks."""
        org = uuid4()
        await asyncio.gather(*(_append(pg_uow, org) for _ in range(10)))

        async with pg_uow.begin() as tx:
            entries = await tx.ledger.list_entries(org, AuditFilters(), _now(), limit=50)
        entries.sort(key=lambda e: e.ledger_seq)

        assert entries[0].prev_hash is None
        for before, after in zip(entries, entries[1:]):
            assert after.prev_hash == before.hash

    async def test_round_trip(self, pg_uow: PostgresUnitOfWork) -> None:
        org = uuid4()
        entry = await _append(
            pg_uow, org, "policy.denied", metadata={"policy_statement": "no exports"}
        )

        async with pg_uow.begin() as tx:
            stored = await tx.ledger.get(org, entry.id)

        assert stored is not None
        assert stored.hash == entry.hash
        assert stored.category == LedgerCategory.GOVERNANCE
        assert stored.metadata["policy_statement"] == "no exports"
        assert stored.recompute_hash(DEFAULT_HASH_SALT) == stored.hash

    async def test_unserializable_metadata_rejected(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        with pytest.raises(LedgerWriteError):
            await _append(pg_uow, uuid4(), metadata={"value": object()})


class TestImmutability:
    @pytest.mark.parametrize(
        "statement",
        [
            "UPDATE ledger_entries SET event_name = 'job.deleted'",
            "DELETE FROM ledger_entries",
        ],
    )
    async def test_trigger_blocks_mutation(
        self, pg_uow: PostgresUnitOfWork, statement: str
    ) -> None:
        await _append(pg_uow, uuid4())

        with pytest.raises(DBAPIError, match="immutable"):
            async with pg_uow.begin() as tx:
                await tx.session.execute(text(statement))

    async def test_failed_transaction_leaves_no_entry(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        org = uuid4()
        spec = EventContractRegistry.resolve(LedgerEntrySpec("job.created"))

        with pytest.raises(RuntimeError):
            async with pg_uow.begin() as tx:
                await tx.ledger.append(org, None, spec)
                raise RuntimeError("abort")

        async with pg_uow.begin() as tx:
            assert await tx.ledger.list_entries(org, AuditFilters(), _now(), limit=10) == []
