"""In-memory unit of work.

Transactions are serialized with a single asyncio lock. On begin, each
store is snapshotted and a restore handler is registered on an
AtomicOperationContext; if the transaction body raises, the handlers
run (LIFO, after any handlers the body registered itself) and every
store is back where it was before the transaction started.

Not reentrant: do not open a transaction inside another one.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.domain.primitives.ensure_atomicity import AtomicOperationContext
from custody.infrastructure.stubs.export_job_repository_stub import (
    ExportJobRepositoryStub,
)
from custody.infrastructure.stubs.idempotency_store_stub import IdempotencyStoreStub
from custody.infrastructure.stubs.ledger_root_repository_stub import (
    LedgerRootRepositoryStub,
)
from custody.infrastructure.stubs.ledger_store_stub import LedgerStoreStub


@dataclass
class InMemoryTransaction:
    ledger: LedgerStoreStub
    exports: ExportJobRepositoryStub
    idempotency: IdempotencyStoreStub
    roots: LedgerRootRepositoryStub
    _context: AtomicOperationContext

    def on_rollback(
        self, handler: Callable[[], None] | Callable[[], Awaitable[Any]]
    ) -> None:
        self._context.add_rollback(handler)


class InMemoryUnitOfWork(UnitOfWorkPort):
    def __init__(
        self,
        ledger: LedgerStoreStub | None = None,
        exports: ExportJobRepositoryStub | None = None,
        idempotency: IdempotencyStoreStub | None = None,
        roots: LedgerRootRepositoryStub | None = None,
    ) -> None:
        self.ledger = ledger or LedgerStoreStub()
        self.exports = exports or ExportJobRepositoryStub()
        self.idempotency = idempotency or IdempotencyStoreStub()
        self.roots = roots or LedgerRootRepositoryStub()
        self._lock = asyncio.Lock()
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[InMemoryTransaction]:
        async with self._lock:
            context = AtomicOperationContext()
            for store in (self.ledger, self.exports, self.idempotency, self.roots):
                snapshot = store.snapshot()
                context.add_rollback(
                    lambda store=store, snapshot=snapshot: store.restore(snapshot)  # type: ignore[misc]
                )
            try:
                async with context:
                    yield InMemoryTransaction(
                        ledger=self.ledger,
                        exports=self.exports,
                        idempotency=self.idempotency,
                        roots=self.roots,
                        _context=context,
                    )
            except BaseException:
                self.rollbacks += 1
                raise
            context.discard()
            self.commits += 1
