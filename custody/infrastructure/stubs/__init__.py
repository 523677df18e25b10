"""In-memory stub implementations of the application ports.

For development and testing only. Not suitable for production.
"""

from custody.infrastructure.stubs.export_job_repository_stub import (
    ExportJobRepositoryStub,
)
from custody.infrastructure.stubs.external_stubs import (
    ExportPayloadBuilderStub,
    InMemoryArtifactStore,
    OrganizationDirectoryStub,
    ReadinessSourceStub,
)
from custody.infrastructure.stubs.idempotency_store_stub import IdempotencyStoreStub
from custody.infrastructure.stubs.ledger_root_repository_stub import (
    LedgerRootRepositoryStub,
)
from custody.infrastructure.stubs.ledger_store_stub import LedgerStoreStub
from custody.infrastructure.stubs.rate_limiter_stub import RateLimiterStub
from custody.infrastructure.stubs.unit_of_work_stub import (
    InMemoryTransaction,
    InMemoryUnitOfWork,
)

__all__ = [
    "ExportJobRepositoryStub",
    "ExportPayloadBuilderStub",
    "IdempotencyStoreStub",
    "InMemoryArtifactStore",
    "InMemoryTransaction",
    "InMemoryUnitOfWork",
    "LedgerRootRepositoryStub",
    "LedgerStoreStub",
    "OrganizationDirectoryStub",
    "RateLimiterStub",
    "ReadinessSourceStub",
]
