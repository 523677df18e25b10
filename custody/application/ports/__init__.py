"""Application ports (protocols) implemented by infrastructure adapters."""

from custody.application.ports.export_job_repository import ExportJobRepositoryPort
from custody.application.ports.external import (
    ArtifactStorePort,
    ExportFile,
    ExportPayloadBuilderPort,
    OrganizationDirectoryPort,
    ReadinessSourcePort,
)
from custody.application.ports.idempotency_store import IdempotencyStorePort
from custody.application.ports.ledger_root_repository import LedgerRootRepositoryPort
from custody.application.ports.ledger_store import (
    CategoryStats,
    LedgerAggregate,
    LedgerStorePort,
)
from custody.application.ports.rate_limiter import RateLimiterPort, RateLimitResult
from custody.application.ports.unit_of_work import TransactionPort, UnitOfWorkPort

__all__ = [
    "ArtifactStorePort",
    "CategoryStats",
    "ExportFile",
    "ExportJobRepositoryPort",
    "ExportPayloadBuilderPort",
    "IdempotencyStorePort",
    "LedgerAggregate",
    "LedgerRootRepositoryPort",
    "LedgerStorePort",
    "OrganizationDirectoryPort",
    "RateLimitResult",
    "RateLimiterPort",
    "ReadinessSourcePort",
    "TransactionPort",
    "UnitOfWorkPort",
]
