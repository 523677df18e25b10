"""In-memory export job repository stub.

Implements ExportJobRepositoryPort for development and testing.

`claim_next` reads and writes without awaiting in between, so on a
single event loop it is atomic: concurrent workers can never both
observe the same job as queued.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from uuid import UUID

from custody.application.ports.export_job_repository import ExportJobRepositoryPort
from custody.domain.models.export_job import ExportJob, ExportState


class ExportJobRepositoryStub(ExportJobRepositoryPort):
    def __init__(self) -> None:
        self._jobs: dict[UUID, ExportJob] = {}

    def snapshot(self) -> dict[UUID, ExportJob]:
        return dict(self._jobs)

    def restore(self, snapshot: dict[UUID, ExportJob]) -> None:
        self._jobs = dict(snapshot)

    @property
    def jobs(self) -> list[ExportJob]:
        return list(self._jobs.values())

    async def add(self, job: ExportJob) -> None:
        if job.id in self._jobs:
            raise ValueError(f"Export {job.id} already exists")
        if any(
            existing.verification_token == job.verification_token
            for existing in self._jobs.values()
        ):
            raise ValueError("verification_token must be unique")
        self._jobs[job.id] = job

    async def get(self, export_id: UUID) -> ExportJob | None:
        return self._jobs.get(export_id)

    async def get_for_organization(
        self, organization_id: UUID, export_id: UUID
    ) -> ExportJob | None:
        job = self._jobs.get(export_id)
        if job is None or job.organization_id != organization_id:
            return None
        return job

    async def get_by_verification_token(self, token: str) -> ExportJob | None:
        for job in self._jobs.values():
            if job.verification_token == token:
                return job
        return None

    async def claim_next(
        self, max_concurrent_per_org: int, now: datetime
    ) -> ExportJob | None:
        preparing = Counter(
            job.organization_id
            for job in self._jobs.values()
            if job.state == ExportState.PREPARING
        )
        queued = sorted(
            (job for job in self._jobs.values() if job.state == ExportState.QUEUED),
            key=lambda job: (job.requested_at, str(job.id)),
        )
        for job in queued:
            if preparing[job.organization_id] >= max_concurrent_per_org:
                continue
            claimed = job.claimed(now)
            self._jobs[job.id] = claimed
            return claimed
        return None

    async def save(self, job: ExportJob, expected_version: int) -> bool:
        current = self._jobs.get(job.id)
        if current is None or current.version != expected_version:
            return False
        self._jobs[job.id] = job
        return True

    async def list_by_state(
        self, states: set[ExportState], limit: int = 500
    ) -> list[ExportJob]:
        matching = [job for job in self._jobs.values() if job.state in states]
        matching.sort(key=lambda job: job.requested_at)
        return matching[:limit]

    async def list_stuck(
        self, started_before: datetime, limit: int = 100
    ) -> list[ExportJob]:
        stuck = [
            job
            for job in self._jobs.values()
            if job.state == ExportState.PREPARING
            and job.started_at is not None
            and job.started_at < started_before
        ]
        stuck.sort(key=lambda job: job.started_at)  # type: ignore[arg-type, return-value]
        return stuck[:limit]

    async def list_settled(
        self,
        state: ExportState,
        settled_by: datetime,
        after: tuple[datetime, UUID] | None = None,
        limit: int = 500,
    ) -> list[ExportJob]:
        settled = [
            job
            for job in self._jobs.values()
            if job.state == state
            and job.settled_at <= settled_by
            and (after is None or (job.settled_at, job.id) > after)
        ]
        settled.sort(key=lambda job: (job.settled_at, job.id))
        return settled[:limit]
