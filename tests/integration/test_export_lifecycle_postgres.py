"""End-to-end export lifecycle against PostgreSQL.

Request, claim, generate, seal and verify, with every service wired the
way the API and workers wire them, on the real ledger export builder.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from custody.application.dtos.verification import ChainStatus
from custody.bootstrap.container import CustodyContainer, build_container
from custody.config import TEST_EXPORT_QUEUE_CONFIG, ApiConfig, LedgerConfig
from custody.domain.models.export_job import ExportState, ExportType
from custody.infrastructure.adapters.postgres import PostgresUnitOfWork
from tests.helpers import make_context

pytestmark = pytest.mark.integration


@pytest.fixture
def pg_container(pg_uow: PostgresUnitOfWork) -> CustodyContainer:
    return build_container(
        ApiConfig(), LedgerConfig(), TEST_EXPORT_QUEUE_CONFIG, uow=pg_uow
    )


class TestExportLifecycle:
    async def test_request_generate_verify(self, pg_container: CustodyContainer) -> None:
        org = uuid4()
        context = make_context(org)

        created = await pg_container.exports.request_export(
            context, ExportType.LEDGER, idempotency_key="lifecycle-1"
        )
        replay = await pg_container.exports.request_export(
            context, ExportType.LEDGER, idempotency_key="lifecycle-1"
        )
        settled = await pg_container.claim_coordinator("it-worker").run_once()
        result = await pg_container.verification.verify_export_token(
            settled.verification_token
        )

        assert created.ok
        assert replay.replayed
        assert replay.data["id"] == created.data["id"]
        assert settled.state == ExportState.READY
        assert result.manifest_match
        assert result.ledger_match
        assert result.chain_status == ChainStatus.PENDING

    async def test_roots_anchor_completed_export(
        self, pg_container: CustodyContainer
    ) -> None:
        org = uuid4()
        await pg_container.exports.request_export(make_context(org), ExportType.LEDGER)
        settled = await pg_container.claim_coordinator().run_once()
        day = datetime.now(timezone.utc).date()

        batch = await pg_container.roots.compute_daily_roots(day)
        again = await pg_container.roots.compute_daily_roots(day)
        verification = await pg_container.roots.verify_root(org, day)
        token = await pg_container.verification.verify_export_token(
            settled.verification_token
        )

        assert org in batch.computed
        assert org in again.skipped
        assert verification.valid
        assert token.chain_status == ChainStatus.ANCHORED

    async def test_cancel_records_previous_state(
        self, pg_container: CustodyContainer
    ) -> None:
        org = uuid4()
        context = make_context(org)
        created = await pg_container.exports.request_export(context, ExportType.LEDGER)

        canceled = await pg_container.exports.cancel_export(
            make_context(org, endpoint="POST /v1/exports/{export_id}/cancel"),
            UUID(created.data["id"]),
        )
        events = await pg_container.ledger.list_events(org)

        assert canceled.data["state"] == ExportState.CANCELED.value
        assert events[0].event_name == "export.canceled"
        assert events[0].metadata["previous_state"] == "queued"
        assert events[0].prev_hash == events[1].hash

    async def test_stuck_job_swept(self, pg_container: CustodyContainer) -> None:
        org = uuid4()
        await pg_container.exports.request_export(make_context(org), ExportType.LEDGER)
        async with pg_container.uow.begin() as tx:
            stuck = await tx.exports.claim_next(
                3, datetime.now(timezone.utc) - timedelta(hours=1)
            )

        swept = await pg_container.claim_coordinator().sweep_stuck()

        async with pg_container.uow.begin() as tx:
            stored = await tx.exports.get(stuck.id)
        assert swept == 1
        assert stored.state == ExportState.QUEUED
        assert stored.failure_count == 1
