"""API tests for public token verification and manifest verification."""

import asyncio
from datetime import timedelta
from uuid import UUID

from fastapi.testclient import TestClient

from custody.api.main import create_app
from custody.bootstrap.container import CustodyContainer
from custody.config import ApiConfig
from custody.infrastructure.stubs import InMemoryUnitOfWork
from tests.helpers import FakeClock, process_next_export


def _ready_export(client: TestClient, headers: dict, container: CustodyContainer) -> dict:
    created = client.post(
        "/v1/exports", json={"export_type": "proof_pack"}, headers=headers
    ).json()
    process_next_export(container)
    return client.get(f"/v1/exports/{created['id']}", headers=headers).json()


class TestVerifyToken:
    def test_public_verification(
        self, client: TestClient, headers: dict, container: CustodyContainer
    ) -> None:
        """No identity headers are needed."""
        job = _ready_export(client, headers, container)

        response = client.get(f"/v1/verify/{job['verification_token']}")

        assert response.status_code == 200
        data = response.json()
        assert data["verified"] is True
        assert data["export_id"] == job["id"]
        assert data["manifest_hash"] == job["manifest_hash"]
        assert data["manifest_match"] is True
        assert data["ledger_match"] is True
        assert data["chain_status"] == "pending"

    def test_unknown_token(self, client: TestClient) -> None:
        response = client.get("/v1/verify/not-a-token")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "VERIFICATION_TOKEN_INVALID"

    def test_token_of_queued_export_is_not_found(
        self, client: TestClient, headers: dict
    ) -> None:
        created = client.post(
            "/v1/exports", json={"export_type": "ledger"}, headers=headers
        ).json()

        response = client.get(f"/v1/verify/{created['verification_token']}")

        assert response.status_code == 404

    def test_expired_token(
        self,
        client: TestClient,
        headers: dict,
        container: CustodyContainer,
        clock: FakeClock,
    ) -> None:
        job = _ready_export(client, headers, container)
        clock.advance(delta=timedelta(days=31))

        response = client.get(f"/v1/verify/{job['verification_token']}")

        assert response.status_code == 410
        assert response.json()["detail"]["code"] == "VERIFICATION_TOKEN_EXPIRED"

    def test_rate_limited_per_client(self, container: CustodyContainer) -> None:
        container.api_config = ApiConfig(verify_rate_limit_per_minute=2)
        with TestClient(create_app(container)) as client:
            statuses = [client.get("/v1/verify/token").status_code for _ in range(3)]
            blocked = client.get("/v1/verify/token")

        assert statuses == [404, 404, 429]
        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) >= 1


class TestVerifyManifest:
    def test_manifest_matches_export(
        self,
        client: TestClient,
        headers: dict,
        container: CustodyContainer,
        uow: InMemoryUnitOfWork,
    ) -> None:
        job = _ready_export(client, headers, container)
        stored = asyncio.run(uow.exports.get(UUID(job["id"])))

        response = client.post(
            "/v1/verify/manifest",
            json={
                "manifest": stored.manifest,
                "manifest_hash": job["manifest_hash"],
                "export_id": job["id"],
            },
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["manifest_hash"] == job["manifest_hash"]
        assert data["hash_match"] is True
        assert data["export_match"] is True
        assert data["ledger_match"] is True
        assert data["export_state"] == "ready"

    def test_altered_manifest(
        self,
        client: TestClient,
        headers: dict,
        container: CustodyContainer,
        uow: InMemoryUnitOfWork,
    ) -> None:
        job = _ready_export(client, headers, container)
        stored = asyncio.run(uow.exports.get(UUID(job["id"])))
        manifest = {**stored.manifest, "export_type": "ledger"}

        response = client.post(
            "/v1/verify/manifest",
            json={"manifest": manifest, "export_id": job["id"]},
            headers=headers,
        )

        data = response.json()
        assert data["hash_match"] is None
        assert data["export_match"] is False
        assert data["ledger_match"] is False

    def test_malformed_manifest(self, client: TestClient, headers: dict) -> None:
        response = client.post(
            "/v1/verify/manifest", json={"manifest": {"files": []}}, headers=headers
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    def test_requires_identity(self, client: TestClient) -> None:
        response = client.post(
            "/v1/verify/manifest", json={"manifest": {"version": "1.0", "files": []}}
        )
        assert response.status_code == 401
