"""Integration tests for export claiming on PostgreSQL."""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from custody.domain.models.export_job import ExportJob, ExportState, ExportType
from custody.infrastructure.adapters.postgres import PostgresUnitOfWork

pytestmark = pytest.mark.integration

T0 = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


async def _queue(uow: PostgresUnitOfWork, org_id: UUID, offset: int) -> ExportJob:
    job = ExportJob.create(org_id, ExportType.LEDGER, now=T0 + timedelta(seconds=offset))
    async with uow.begin() as tx:
        await tx.exports.add(job)
    return job


async def _claim(uow: PostgresUnitOfWork, max_concurrent: int = 3) -> ExportJob | None:
    async with uow.begin() as tx:
        return await tx.exports.claim_next(max_concurrent, T0 + timedelta(hours=1))


class TestClaimNext:
    async def test_oldest_first(self, pg_uow: PostgresUnitOfWork) -> None:
        org = uuid4()
        older = await _queue(pg_uow, org, 1)
        await _queue(pg_uow, org, 2)

        claimed = await _claim(pg_uow)

        assert claimed.id == older.id
        assert claimed.state == ExportState.PREPARING
        assert claimed.version == older.version + 1

    async def test_concurrent_claims_are_exclusive(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        """Eight claimers, five jobs: every job claimed exactly once."""
        jobs = [await _queue(pg_uow, uuid4(), i) for i in range(5)]

        results = await asyncio.gather(*(_claim(pg_uow) for _ in range(8)))

        claimed = [job.id for job in results if job is not None]
        assert sorted(claimed, key=str) == sorted((j.id for j in jobs), key=str)
        assert results.count(None) == 3

    async def test_per_organization_limit(self, pg_uow: PostgresUnitOfWork) -> None:
        busy, idle = uuid4(), uuid4()
        for i in range(3):
            await _queue(pg_uow, busy, i)
        other = await _queue(pg_uow, idle, 10)

        results = await asyncio.gather(*(_claim(pg_uow, 2) for _ in range(4)))

        claimed = [job for job in results if job is not None]
        assert sum(job.organization_id == busy for job in claimed) == 2
        assert other.id in {job.id for job in claimed}


class TestOptimisticSave:
    async def test_stale_version_is_rejected(self, pg_uow: PostgresUnitOfWork) -> None:
        await _queue(pg_uow, uuid4(), 0)
        claimed = await _claim(pg_uow)
        finished = T0 + timedelta(hours=2)

        async with pg_uow.begin() as tx:
            saved = await tx.exports.save(
                claimed.attempt_failed("EXPORT_GENERATION_FAILED", "boom", finished),
                claimed.version,
            )
        async with pg_uow.begin() as tx:
            stale = await tx.exports.save(claimed.canceled(finished), claimed.version)
            stored = await tx.exports.get(claimed.id)

        assert saved is True
        assert stale is False
        assert stored.state == ExportState.QUEUED
        assert stored.failure_count == 1

    async def test_lookup_by_verification_token(
        self, pg_uow: PostgresUnitOfWork
    ) -> None:
        job = await _queue(pg_uow, uuid4(), 0)

        async with pg_uow.begin() as tx:
            found = await tx.exports.get_by_verification_token(job.verification_token)
            missing = await tx.exports.get_for_organization(uuid4(), job.id)

        assert found.id == job.id
        assert found.filters == job.filters
        assert missing is None
