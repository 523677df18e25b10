"""
Pytest configuration and shared fixtures for Custody Core tests.

Testing Standards:
- All async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- Time-dependent tests use the `clock` fixture (FakeClock), never the wall clock
- Unit tests go in tests/unit/ and run against the in-memory stubs
- Integration tests go in tests/integration/ and need Docker
"""

from collections.abc import Iterator
from uuid import UUID, uuid4

import pytest

from custody.bootstrap.container import (
    CustodyContainer,
    build_container,
    reset_container,
)
from custody.config import TEST_EXPORT_QUEUE_CONFIG, ApiConfig, LedgerConfig
from custody.infrastructure.monitoring.metrics import reset_metrics_collector
from custody.infrastructure.stubs import (
    ExportPayloadBuilderStub,
    InMemoryArtifactStore,
    InMemoryUnitOfWork,
    LedgerStoreStub,
    OrganizationDirectoryStub,
    RateLimiterStub,
    ReadinessSourceStub,
)
from custody.domain.models.plan_tier import PlanTier
from tests.helpers import FakeClock


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from custody import __version__

    return __version__


@pytest.fixture(autouse=True)
def fresh_singletons() -> Iterator[None]:
    """Isolate the metrics registry and the container singleton per test."""
    reset_metrics_collector()
    reset_container()
    yield
    reset_metrics_collector()
    reset_container()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def org_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_org_id() -> UUID:
    return uuid4()


@pytest.fixture
def uow(clock: FakeClock) -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(ledger=LedgerStoreStub(clock=clock))


@pytest.fixture
def directory(org_id: UUID) -> OrganizationDirectoryStub:
    return OrganizationDirectoryStub({org_id: PlanTier.STARTER})


@pytest.fixture
def readiness_source() -> ReadinessSourceStub:
    return ReadinessSourceStub()


@pytest.fixture
def builder() -> ExportPayloadBuilderStub:
    return ExportPayloadBuilderStub()


@pytest.fixture
def artifacts() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def container(
    clock: FakeClock,
    uow: InMemoryUnitOfWork,
    directory: OrganizationDirectoryStub,
    readiness_source: ReadinessSourceStub,
    builder: ExportPayloadBuilderStub,
    artifacts: InMemoryArtifactStore,
) -> CustodyContainer:
    """Fully wired in-memory services sharing one fake clock."""
    return build_container(
        ApiConfig(),
        LedgerConfig(),
        TEST_EXPORT_QUEUE_CONFIG,
        uow=uow,
        directory=directory,
        readiness_source=readiness_source,
        builder=builder,
        artifacts=artifacts,
        rate_limiter=RateLimiterStub(clock=clock),
        clock=clock,
    )
