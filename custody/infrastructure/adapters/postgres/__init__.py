"""PostgreSQL adapters (SQLAlchemy asyncio + asyncpg, raw SQL)."""

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
from custody.infrastructure.adapters.postgres.schema import apply_schema, load_schema
from custody.infrastructure.adapters.postgres.unit_of_work import (
    PostgresTransaction,
    PostgresUnitOfWork,
)

__all__ = [
    "PostgresExportJobRepository",
    "PostgresIdempotencyStore",
    "PostgresLedgerRootRepository",
    "PostgresLedgerStore",
    "PostgresTransaction",
    "PostgresUnitOfWork",
    "apply_schema",
    "load_schema",
]
