"""Unit tests for the in-memory unit of work and AtomicOperationContext."""

import pytest

from custody.domain.models.event_contracts import EventContractRegistry
from custody.domain.models.export_job import ExportJob, ExportType
from custody.domain.models.ledger_entry import LedgerEntrySpec
from custody.domain.primitives import AtomicOperationContext
from custody.infrastructure.stubs import InMemoryUnitOfWork

SPEC = EventContractRegistry.resolve(LedgerEntrySpec("job.created"))


class TestInMemoryUnitOfWork:
    """Transactions commit whole or roll back whole."""

    async def test_commit_keeps_writes(self, uow: InMemoryUnitOfWork, org_id) -> None:
        async with uow.begin() as tx:
            await tx.exports.add(ExportJob.create(org_id, ExportType.LEDGER))
            await tx.ledger.append(org_id, None, SPEC)

        assert len(uow.exports.jobs) == 1
        assert len(uow.ledger.entries) == 1
        assert uow.commits == 1

    async def test_exception_restores_every_store(
        self, uow: InMemoryUnitOfWork, org_id
    ) -> None:
        async with uow.begin() as tx:
            await tx.ledger.append(org_id, None, SPEC)
        head = uow.ledger.entries[-1]

        with pytest.raises(RuntimeError):
            async with uow.begin() as tx:
                await tx.exports.add(ExportJob.create(org_id, ExportType.LEDGER))
                await tx.ledger.append(org_id, None, SPEC)
                raise RuntimeError("abort")

        assert uow.exports.jobs == []
        assert uow.ledger.entries == [head]
        assert uow.rollbacks == 1

    async def test_chain_continues_after_rollback(
        self, uow: InMemoryUnitOfWork, org_id
    ) -> None:
        """A rolled-back append leaves no gap in the hash chain."""
        async with uow.begin() as tx:
            first = await tx.ledger.append(org_id, None, SPEC)
        with pytest.raises(RuntimeError):
            async with uow.begin() as tx:
                await tx.ledger.append(org_id, None, SPEC)
                raise RuntimeError("abort")
        async with uow.begin() as tx:
            second = await tx.ledger.append(org_id, None, SPEC)

        assert second.prev_hash == first.hash
        assert second.ledger_seq == first.ledger_seq + 1

    async def test_registered_rollback_handlers_run(
        self, uow: InMemoryUnitOfWork
    ) -> None:
        calls: list[str] = []

        async def cleanup() -> None:
            calls.append("async")

        with pytest.raises(ValueError):
            async with uow.begin() as tx:
                tx.on_rollback(cleanup)
                tx.on_rollback(lambda: calls.append("sync"))
                raise ValueError("abort")

        assert calls == ["sync", "async"]

    async def test_handlers_do_not_run_on_commit(self, uow: InMemoryUnitOfWork) -> None:
        calls: list[str] = []
        async with uow.begin() as tx:
            tx.on_rollback(lambda: calls.append("ran"))
        assert calls == []


class TestAtomicOperationContext:
    async def test_failing_handler_does_not_stop_others(self) -> None:
        """Handlers run LIFO and a broken one is skipped."""
        calls: list[int] = []

        def broken() -> None:
            raise RuntimeError("handler failed")

        with pytest.raises(KeyError):
            async with AtomicOperationContext() as ctx:
                ctx.add_rollback(lambda: calls.append(1))
                ctx.add_rollback(broken)
                ctx.add_rollback(lambda: calls.append(3))
                raise KeyError("boom")

        assert calls == [3, 1]

    async def test_explicit_rollback_clears_handlers(self) -> None:
        ctx = AtomicOperationContext()
        ctx.add_rollback(lambda: None)
        assert ctx.pending_rollbacks == 1

        await ctx.rollback()

        assert ctx.pending_rollbacks == 0
