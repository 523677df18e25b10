"""Export job repository port.

Persistence for export jobs, including the atomic claim used by workers.

Claim contract:
- `claim_next` atomically moves the oldest claimable `queued` job to
  `preparing` and returns it, or returns None when nothing is claimable.
  Two concurrent callers never receive the same job.
- A job is claimable only while its organization has fewer than
  `max_concurrent_per_org` jobs in `preparing`.

Write contract:
- `save(job, expected_version)` persists only if the stored version
  still equals `expected_version` and returns False otherwise. Workers
  use this so that a job canceled or swept while being generated is
  never overwritten.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from custody.domain.models.export_job import ExportJob, ExportState


class ExportJobRepositoryPort(Protocol):
    async def add(self, job: ExportJob) -> None:
        ...

    async def get(self, export_id: UUID) -> ExportJob | None:
        ...

    async def get_for_organization(
        self, organization_id: UUID, export_id: UUID
    ) -> ExportJob | None:
        ...

    async def get_by_verification_token(self, token: str) -> ExportJob | None:
        ...

    async def claim_next(
        self, max_concurrent_per_org: int, now: datetime
    ) -> ExportJob | None:
        ...

    async def save(self, job: ExportJob, expected_version: int) -> bool:
        ...

    async def list_by_state(
        self, states: set[ExportState], limit: int = 500
    ) -> list[ExportJob]:
        ...

    async def list_stuck(self, started_before: datetime, limit: int = 100) -> list[ExportJob]:
        """`preparing` jobs whose current attempt started before the cutoff."""
        ...

    async def list_settled(
        self,
        state: ExportState,
        settled_by: datetime,
        after: tuple[datetime, UUID] | None = None,
        limit: int = 500,
    ) -> list[ExportJob]:
        """Jobs in `state` that settled at or before the cutoff, oldest first.

        Ordered by (settled_at, id). `after` is that pair for the last job
        of the previous page.
        """
        ...
