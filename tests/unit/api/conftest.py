"""Fixtures for API tests: a TestClient over the in-memory container."""

from collections.abc import Iterator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from custody.api.main import create_app
from custody.bootstrap.container import CustodyContainer

USER_ID = "00000000-0000-4000-8000-0000000000aa"


@pytest.fixture
def client(container: CustodyContainer) -> Iterator[TestClient]:
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def headers(org_id: UUID) -> dict[str, str]:
    return {
        "X-Organization-ID": str(org_id),
        "X-User-ID": USER_ID,
        "X-User-Role": "admin",
    }
