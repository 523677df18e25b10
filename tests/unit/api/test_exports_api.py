"""API tests for the export routes."""

from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient

from custody.bootstrap.container import CustodyContainer
from custody.infrastructure.stubs import InMemoryUnitOfWork
from tests.helpers import FakeClock, process_next_export


def _create(client: TestClient, headers: dict, **body) -> dict:
    body.setdefault("export_type", "ledger")
    response = client.post("/v1/exports", json=body, headers=headers)
    assert response.status_code == 202, response.text
    return response.json()


class TestCreateExport:
    def test_queues_export(
        self, client: TestClient, headers: dict, uow: InMemoryUnitOfWork
    ) -> None:
        data = _create(client, headers, filters={"category": "governance"})

        assert data["state"] == "queued"
        assert data["export_type"] == "ledger"
        assert data["organization_id"] == headers["X-Organization-ID"]
        assert data["filters"]["category"] == "governance"
        assert data["verification_token"]
        [entry] = uow.ledger.entries
        assert entry.event_name == "export.requested"
        assert data["ledger_entry_id"] == str(entry.id)

    def test_idempotent_retry_replays(
        self, client: TestClient, headers: dict, uow: InMemoryUnitOfWork
    ) -> None:
        """A retry returns the first response body unchanged."""
        retry_headers = {**headers, "Idempotency-Key": "create-1"}
        body = {"export_type": "ledger"}
        first = client.post("/v1/exports", json=body, headers=retry_headers)
        second = client.post("/v1/exports", json=body, headers=retry_headers)

        assert first.status_code == second.status_code == 202
        assert second.content == first.content
        assert second.headers["Location"] == first.headers["Location"]
        assert first.headers["Location"] == f"/v1/exports/{first.json()['id']}"
        assert "Idempotent-Replayed" not in first.headers
        assert second.headers["Idempotent-Replayed"] == "true"
        assert len(uow.exports.jobs) == 1
        assert len(uow.ledger.entries) == 1

    def test_key_reused_with_different_body(
        self, client: TestClient, headers: dict
    ) -> None:
        retry_headers = {**headers, "Idempotency-Key": "create-1"}
        _create(client, retry_headers)

        response = client.post(
            "/v1/exports", json={"export_type": "proof_pack"}, headers=retry_headers
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "IDEMPOTENCY_KEY_REUSED"

    def test_custom_range_without_dates_rejected(
        self, client: TestClient, headers: dict
    ) -> None:
        response = client.post(
            "/v1/exports",
            json={"export_type": "ledger", "filters": {"time_range": "custom"}},
            headers=headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    def test_rate_limited_with_retry_after(
        self, client: TestClient, headers: dict, container: CustodyContainer
    ) -> None:
        for _ in range(container.export_config.create_rate_limit_per_minute):
            _create(client, headers)

        response = client.post(
            "/v1/exports", json={"export_type": "ledger"}, headers=headers
        )

        assert response.status_code == 429
        assert response.json()["detail"]["code"] == "RATE_LIMITED"
        assert int(response.headers["Retry-After"]) >= 1


class TestIdentity:
    def test_missing_organization_header(self, client: TestClient, headers: dict) -> None:
        del headers["X-Organization-ID"]
        response = client.post(
            "/v1/exports", json={"export_type": "ledger"}, headers=headers
        )
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHENTICATED"

    def test_missing_role_header(self, client: TestClient, headers: dict) -> None:
        del headers["X-User-Role"]
        response = client.get(f"/v1/exports/{uuid4()}", headers=headers)
        assert response.status_code == 401

    def test_malformed_user_id(self, client: TestClient, headers: dict) -> None:
        headers["X-User-ID"] = "not-a-uuid"
        response = client.get(f"/v1/exports/{uuid4()}", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_IDENTITY"


class TestGetAndDownload:
    def test_unknown_export(self, client: TestClient, headers: dict) -> None:
        response = client.get(f"/v1/exports/{uuid4()}", headers=headers)
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EXPORT_NOT_FOUND"

    def test_other_organization_cannot_see_export(
        self, client: TestClient, headers: dict
    ) -> None:
        created = _create(client, headers)
        other = {**headers, "X-Organization-ID": str(uuid4())}

        response = client.get(f"/v1/exports/{created['id']}", headers=other)

        assert response.status_code == 404

    def test_download_before_ready(self, client: TestClient, headers: dict) -> None:
        created = _create(client, headers)

        response = client.get(f"/v1/exports/{created['id']}/download", headers=headers)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "EXPORT_NOT_READY"

    def test_download_ready_export(
        self, client: TestClient, headers: dict, container: CustodyContainer
    ) -> None:
        created = _create(client, headers)
        process_next_export(container)

        state = client.get(f"/v1/exports/{created['id']}", headers=headers).json()
        response = client.get(f"/v1/exports/{created['id']}/download", headers=headers)

        assert state["state"] == "ready"
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert response.headers["X-Manifest-Hash"] == state["manifest_hash"]
        assert created["id"] in response.headers["Content-Disposition"]


class TestCancelExport:
    def test_cancel_queued_export(
        self, client: TestClient, headers: dict, uow: InMemoryUnitOfWork
    ) -> None:
        created = _create(client, headers)

        response = client.post(f"/v1/exports/{created['id']}/cancel", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "canceled"
        assert uow.ledger.entries[-1].event_name == "export.canceled"
        assert uow.ledger.entries[-1].metadata["previous_state"] == "queued"

    def test_cancel_twice_conflicts(self, client: TestClient, headers: dict) -> None:
        created = _create(client, headers)
        client.post(f"/v1/exports/{created['id']}/cancel", headers=headers)

        response = client.post(f"/v1/exports/{created['id']}/cancel", headers=headers)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_EXPORT_TRANSITION"

    def test_idempotency_key_too_long(self, client: TestClient, headers: dict) -> None:
        response = client.post(
            f"/v1/exports/{uuid4()}/cancel",
            headers={**headers, "Idempotency-Key": "k" * 256},
        )
        assert response.status_code == 422


class TestExportMetrics:
    def test_snapshot(
        self,
        client: TestClient,
        headers: dict,
        container: CustodyContainer,
        clock: FakeClock,
    ) -> None:
        _create(client, headers)
        clock.advance(delta=timedelta(minutes=2))

        response = client.get("/v1/exports/metrics", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["queue_depth"]["queued"] == 1
        assert data["avg_time_in_state_seconds"]["queued"] == 120.0
        assert data["failure_rate"]["ledger"] == 0.0
