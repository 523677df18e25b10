"""PostgreSQL export job repository.

Claiming is one statement: pick the oldest claimable queued row with
`FOR UPDATE SKIP LOCKED` and flip it to preparing with
`UPDATE ... RETURNING`. Rows locked by a concurrent claim are skipped,
never waited on, so two workers can never return the same job.

The per-organization limit counts preparing rows. Claims take a short
transaction-scoped advisory lock first so that two workers cannot both
see an organization at N-1 and both claim one of its jobs.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from custody.application.ports.export_job_repository import ExportJobRepositoryPort
from custody.domain.models.export_job import ExportJob, ExportState, ExportType
from custody.infrastructure.adapters.postgres._json import dump_json, load_json

_CLAIM_LOCK_KEY = "export_jobs:claim"

_COLUMNS = """
    id, organization_id, export_type, state, requested_at, requested_by,
    request_id, work_record_id, filters, idempotency_key, failure_count,
    verification_token, started_at, finished_at, state_changed_at,
    storage_path, manifest, manifest_hash, error_code, error_message, version
"""

_RETURNING = ", ".join(f"e.{column.strip()}" for column in _COLUMNS.split(","))


def row_to_job(row: Mapping[str, Any]) -> ExportJob:
    return ExportJob(
        id=row["id"],
        organization_id=row["organization_id"],
        export_type=ExportType(row["export_type"]),
        state=ExportState(row["state"]),
        requested_at=row["requested_at"],
        requested_by=row["requested_by"],
        request_id=row["request_id"],
        work_record_id=row["work_record_id"],
        filters=load_json(row["filters"]) or {},
        idempotency_key=row["idempotency_key"],
        failure_count=row["failure_count"],
        verification_token=row["verification_token"],
        started_at=row["started_at"],
        finished_at=row["finished_at"],
        state_changed_at=row["state_changed_at"],
        storage_path=row["storage_path"],
        manifest=load_json(row["manifest"]),
        manifest_hash=row["manifest_hash"],
        error_code=row["error_code"],
        error_message=row["error_message"],
        version=row["version"],
    )


def _job_params(job: ExportJob) -> dict[str, Any]:
    return {
        "id": job.id,
        "organization_id": job.organization_id,
        "export_type": job.export_type.value,
        "state": job.state.value,
        "requested_at": job.requested_at,
        "requested_by": job.requested_by,
        "request_id": job.request_id,
        "work_record_id": job.work_record_id,
        "filters": dump_json(job.filters or {}),
        "idempotency_key": job.idempotency_key,
        "failure_count": job.failure_count,
        "verification_token": job.verification_token,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
        "state_changed_at": job.state_changed_at,
        "storage_path": job.storage_path,
        "manifest": dump_json(job.manifest),
        "manifest_hash": job.manifest_hash,
        "error_code": job.error_code,
        "error_message": job.error_message,
        "version": job.version,
    }


class PostgresExportJobRepository(ExportJobRepositoryPort):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, job: ExportJob) -> None:
        await self._session.execute(
            text(f"""
                INSERT INTO export_jobs ({_COLUMNS})
                VALUES (
                    :id, :organization_id, :export_type, :state, :requested_at,
                    :requested_by, :request_id, :work_record_id,
                    CAST(:filters AS JSONB), :idempotency_key, :failure_count,
                    :verification_token, :started_at, :finished_at,
                    :state_changed_at, :storage_path, CAST(:manifest AS JSONB),
                    :manifest_hash, :error_code, :error_message, :version
                )
            """),
            _job_params(job),
        )

    async def _fetch_one(self, where: str, params: dict[str, Any]) -> ExportJob | None:
        result = await self._session.execute(
            text(f"SELECT {_COLUMNS} FROM export_jobs WHERE {where}"), params
        )
        row = result.mappings().first()
        return row_to_job(row) if row else None

    async def get(self, export_id: UUID) -> ExportJob | None:
        return await self._fetch_one("id = :id", {"id": export_id})

    async def get_for_organization(
        self, organization_id: UUID, export_id: UUID
    ) -> ExportJob | None:
        return await self._fetch_one(
            "id = :id AND organization_id = :organization_id",
            {"id": export_id, "organization_id": organization_id},
        )

    async def get_by_verification_token(self, token: str) -> ExportJob | None:
        return await self._fetch_one("verification_token = :token", {"token": token})

    async def claim_next(
        self, max_concurrent_per_org: int, now: datetime
    ) -> ExportJob | None:
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))"),
            {"lock_key": _CLAIM_LOCK_KEY},
        )
        result = await self._session.execute(
            text(f"""
                WITH busy AS (
                    SELECT organization_id
                    FROM export_jobs
                    WHERE state = 'preparing'
                    GROUP BY organization_id
                    HAVING COUNT(*) >= :max_concurrent
                ),
                candidate AS (
                    SELECT id
                    FROM export_jobs
                    WHERE state = 'queued'
                      AND organization_id NOT IN (SELECT organization_id FROM busy)
                    ORDER BY requested_at, id
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                UPDATE export_jobs AS e
                SET state = 'preparing',
                    started_at = :now,
                    state_changed_at = :now,
                    version = e.version + 1
                FROM candidate
                WHERE e.id = candidate.id
                RETURNING {_RETURNING}
            """),
            {"max_concurrent": max_concurrent_per_org, "now": now},
        )
        row = result.mappings().first()
        return row_to_job(row) if row else None

    async def save(self, job: ExportJob, expected_version: int) -> bool:
        result = await self._session.execute(
            text("""
                UPDATE export_jobs
                SET state = :state,
                    failure_count = :failure_count,
                    started_at = :started_at,
                    finished_at = :finished_at,
                    state_changed_at = :state_changed_at,
                    storage_path = :storage_path,
                    manifest = CAST(:manifest AS JSONB),
                    manifest_hash = :manifest_hash,
                    error_code = :error_code,
                    error_message = :error_message,
                    version = :version
                WHERE id = :id AND version = :expected_version
            """),
            {**_job_params(job), "expected_version": expected_version},
        )
        return result.rowcount == 1

    async def list_by_state(
        self, states: set[ExportState], limit: int = 500
    ) -> list[ExportJob]:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM export_jobs
                WHERE state = ANY(:states)
                ORDER BY requested_at
                LIMIT :limit
            """),
            {"states": sorted(s.value for s in states), "limit": limit},
        )
        return [row_to_job(row) for row in result.mappings().all()]

    async def list_stuck(
        self, started_before: datetime, limit: int = 100
    ) -> list[ExportJob]:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM export_jobs
                WHERE state = 'preparing' AND started_at < :started_before
                ORDER BY started_at
                LIMIT :limit
            """),
            {"started_before": started_before, "limit": limit},
        )
        return [row_to_job(row) for row in result.mappings().all()]

    async def list_settled(
        self,
        state: ExportState,
        settled_by: datetime,
        after: tuple[datetime, UUID] | None = None,
        limit: int = 500,
    ) -> list[ExportJob]:
        params: dict[str, Any] = {
            "state": state.value,
            "settled_by": settled_by,
            "limit": limit,
        }
        cursor = ""
        if after is not None:
            cursor = (
                "AND (COALESCE(finished_at, state_changed_at), id)"
                " > (:after_at, :after_id)"
            )
            params["after_at"], params["after_id"] = after
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM export_jobs
                WHERE state = :state
                  AND COALESCE(finished_at, state_changed_at) <= :settled_by
                  {cursor}
                ORDER BY COALESCE(finished_at, state_changed_at), id
                LIMIT :limit
            """),
            params,
        )
        return [row_to_job(row) for row in result.mappings().all()]
