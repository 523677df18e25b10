"""Wiring for Custody Core.

Builds every service once from configuration. CUSTODY_STORAGE=memory
wires the in-memory stubs (development and tests); CUSTODY_STORAGE=postgres
wires the SQLAlchemy adapters and a filesystem artifact store. The rate
limiter is Redis-backed whenever REDIS_URL is set.

The organization directory and readiness counts are owned by other
services; until their adapters are wired in, the stubs stand in for them.

Usage:
    from custody.bootstrap.container import get_container

    container = get_container()
    result = await container.exports.request_export(...)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis
from structlog import get_logger

from custody.application.ports.external import (
    ArtifactStorePort,
    ExportPayloadBuilderPort,
    OrganizationDirectoryPort,
    ReadinessSourcePort,
)
from custody.application.ports.rate_limiter import RateLimiterPort
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services import (
    CommandRunner,
    ExportClaimCoordinator,
    ExportMetricsService,
    ExportService,
    HashVerificationService,
    LedgerExportBuilder,
    LedgerRootService,
    LedgerService,
    LedgerWriteNotifier,
    MerkleTreeService,
    ProjectionService,
    RateLimitService,
    RetentionService,
)
from custody.bootstrap.database import close_database_engine, get_session_factory
from custody.config import ApiConfig, ExportQueueConfig, LedgerConfig
from custody.infrastructure.adapters.postgres import PostgresUnitOfWork
from custody.infrastructure.adapters.redis import RedisRateLimiter
from custody.infrastructure.adapters.storage import LocalArtifactStore
from custody.infrastructure.cache import ProjectionCache
from custody.infrastructure.stubs import (
    InMemoryArtifactStore,
    InMemoryUnitOfWork,
    LedgerStoreStub,
    OrganizationDirectoryStub,
    RateLimiterStub,
    ReadinessSourceStub,
)

logger = get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CustodyContainer:
    api_config: ApiConfig
    ledger_config: LedgerConfig
    export_config: ExportQueueConfig
    uow: UnitOfWorkPort
    directory: OrganizationDirectoryPort
    readiness_source: ReadinessSourcePort
    builder: ExportPayloadBuilderPort
    artifacts: ArtifactStorePort
    rate_limiter: RateLimiterPort
    notifier: LedgerWriteNotifier
    runner: CommandRunner
    rate_limits: RateLimitService
    projections: ProjectionService
    ledger: LedgerService
    roots: LedgerRootService
    verification: HashVerificationService
    exports: ExportService
    export_metrics: ExportMetricsService
    retention: RetentionService
    clock: Callable[[], datetime] = _utc_now
    redis: Redis | None = field(default=None, repr=False)

    def claim_coordinator(self, worker_id: str | None = None) -> ExportClaimCoordinator:
        """A coordinator for one worker; each worker gets its own id."""
        return ExportClaimCoordinator(
            self.uow,
            self.builder,
            self.artifacts,
            config=self.export_config,
            salt=self.ledger_config.hash_salt,
            clock=self.clock,
            worker_id=worker_id,
            notifier=self.notifier,
        )

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
        if self.api_config.storage == "postgres":
            await close_database_engine()


def build_container(
    api_config: ApiConfig | None = None,
    ledger_config: LedgerConfig | None = None,
    export_config: ExportQueueConfig | None = None,
    *,
    uow: UnitOfWorkPort | None = None,
    directory: OrganizationDirectoryPort | None = None,
    readiness_source: ReadinessSourcePort | None = None,
    builder: ExportPayloadBuilderPort | None = None,
    artifacts: ArtifactStorePort | None = None,
    rate_limiter: RateLimiterPort | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> CustodyContainer:
    """Wire all services.

    Keyword arguments replace the adapter that configuration would pick,
    which is how tests inject stubs with a controlled clock.
    """
    api_config = api_config or ApiConfig.from_environment()
    ledger_config = ledger_config or LedgerConfig.from_environment()
    export_config = export_config or ExportQueueConfig.from_environment()
    log = logger.bind(component="bootstrap")

    salt = ledger_config.hash_salt
    if uow is None:
        if api_config.storage == "postgres":
            uow = PostgresUnitOfWork(
                get_session_factory(api_config.database_url), salt=salt, clock=clock
            )
        else:
            uow = InMemoryUnitOfWork(ledger=LedgerStoreStub(salt=salt, clock=clock))

    if artifacts is None:
        if api_config.storage == "postgres":
            artifacts = LocalArtifactStore(export_config.storage_dir)
        else:
            artifacts = InMemoryArtifactStore()

    redis_client: Redis | None = None
    if rate_limiter is None:
        if api_config.redis_url:
            redis_client = Redis.from_url(api_config.redis_url)
            rate_limiter = RedisRateLimiter(redis_client)
        else:
            rate_limiter = RateLimiterStub(clock=clock)

    directory = directory or OrganizationDirectoryStub()
    readiness_source = readiness_source or ReadinessSourceStub()
    builder = builder or LedgerExportBuilder(uow, clock=clock)
    merkle = MerkleTreeService()

    notifier = LedgerWriteNotifier()
    runner = CommandRunner(
        uow,
        notifier=notifier,
        idempotency_ttl=timedelta(hours=ledger_config.idempotency_ttl_hours),
        clock=clock,
    )
    projections = ProjectionService(
        uow,
        readiness_source,
        cache=ProjectionCache(ledger_config.projection_ttl_seconds, clock=clock),
        clock=clock,
    )
    notifier.add_listener(projections.on_ledger_write)

    rate_limits = RateLimitService(rate_limiter, clock=clock)
    roots = LedgerRootService(uow, directory, merkle=merkle, salt=salt, clock=clock)

    container = CustodyContainer(
        api_config=api_config,
        ledger_config=ledger_config,
        export_config=export_config,
        uow=uow,
        directory=directory,
        readiness_source=readiness_source,
        builder=builder,
        artifacts=artifacts,
        rate_limiter=rate_limiter,
        notifier=notifier,
        runner=runner,
        rate_limits=rate_limits,
        projections=projections,
        ledger=LedgerService(uow, clock=clock),
        roots=roots,
        verification=HashVerificationService(
            uow,
            roots,
            salt=salt,
            merkle=merkle,
            event_verify_depth=ledger_config.event_verify_depth,
            clock=clock,
        ),
        exports=ExportService(
            uow,
            runner,
            artifacts,
            rate_limits=rate_limits,
            create_rate_limit_per_minute=export_config.create_rate_limit_per_minute,
            clock=clock,
        ),
        export_metrics=ExportMetricsService(uow, clock=clock),
        retention=RetentionService(
            uow, directory, artifacts, notifier=notifier, clock=clock
        ),
        clock=clock,
        redis=redis_client,
    )
    log.info(
        "custody_container_built",
        storage=api_config.storage,
        shared_rate_limiter=redis_client is not None,
    )
    return container


_container: CustodyContainer | None = None


def get_container() -> CustodyContainer:
    """The process-wide container, built from the environment on first use."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def set_container(container: CustodyContainer) -> None:
    """Install a custom container (testing/override)."""
    global _container
    _container = container


def reset_container() -> None:
    """Drop the container singleton (testing cleanup)."""
    global _container
    _container = None
