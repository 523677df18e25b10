"""Unit of work port.

A transaction groups every write one operation makes: the domain
mutation, the ledger entry documenting it, the export job change and the
idempotency record. Either all of them commit or none of them do.

Usage:
    async with uow.begin() as tx:
        job = await tx.exports.get(export_id)
        await tx.exports.save(job.canceled(), job.version)
        await tx.ledger.append(org_id, actor_id, resolved)
    # committed here; rolled back if the block raised

`on_rollback` registers compensation for side effects that live outside
the database (for example an artifact already written to storage).

Transactions must not be nested.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from custody.application.ports.export_job_repository import ExportJobRepositoryPort
from custody.application.ports.idempotency_store import IdempotencyStorePort
from custody.application.ports.ledger_root_repository import LedgerRootRepositoryPort
from custody.application.ports.ledger_store import LedgerStorePort


class TransactionPort(Protocol):
    ledger: LedgerStorePort
    exports: ExportJobRepositoryPort
    idempotency: IdempotencyStorePort
    roots: LedgerRootRepositoryPort

    def on_rollback(
        self, handler: Callable[[], None] | Callable[[], Awaitable[Any]]
    ) -> None:
        ...


class UnitOfWorkPort(Protocol):
    def begin(self) -> AbstractAsyncContextManager[TransactionPort]:
        ...
