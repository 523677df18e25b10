"""PostgreSQL unit of work.

One AsyncSession and one database transaction per `begin()`. Every
repository of the transaction shares that session, so the domain
mutation, its ledger entry and the idempotency record commit together.

Rollback handlers registered with `on_rollback` run after the database
transaction has rolled back; they compensate for side effects outside
the database, such as an artifact already written to storage.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.domain.hash_utils import DEFAULT_HASH_SALT
from custody.domain.primitives.ensure_atomicity import AtomicOperationContext
from custody.infrastructure.adapters.postgres.export_job_repository import (
    PostgresExportJobRepository,
)
from custody.infrastructure.adapters.postgres.idempotency_store import (
    PostgresIdempotencyStore,
)
from custody.infrastructure.adapters.postgres.ledger_root_repository import (
    PostgresLedgerRootRepository,
)
from custody.infrastructure.adapters.postgres.ledger_store import PostgresLedgerStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PostgresTransaction:
    session: AsyncSession
    ledger: PostgresLedgerStore
    exports: PostgresExportJobRepository
    idempotency: PostgresIdempotencyStore
    roots: PostgresLedgerRootRepository
    _context: AtomicOperationContext

    def on_rollback(
        self, handler: Callable[[], None] | Callable[[], Awaitable[Any]]
    ) -> None:
        self._context.add_rollback(handler)


class PostgresUnitOfWork(UnitOfWorkPort):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        salt: str = DEFAULT_HASH_SALT,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._salt = salt
        self._clock = clock

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[PostgresTransaction]:
        context = AtomicOperationContext()
        async with self._session_factory() as session:
            async with context:
                async with session.begin():
                    yield PostgresTransaction(
                        session=session,
                        ledger=PostgresLedgerStore(session, self._salt, self._clock),
                        exports=PostgresExportJobRepository(session),
                        idempotency=PostgresIdempotencyStore(session),
                        roots=PostgresLedgerRootRepository(session),
                        _context=context,
                    )
            context.discard()
