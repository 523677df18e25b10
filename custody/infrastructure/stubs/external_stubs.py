"""Stubs for collaborators outside this service.

Organization directory, readiness source, payload builder and artifact
store. Used by development wiring (CUSTODY_STORAGE=memory) and tests.
"""

from __future__ import annotations

import json
from uuid import UUID

from custody.application.ports.external import (
    ArtifactStorePort,
    ExportFile,
    ExportPayloadBuilderPort,
    OrganizationDirectoryPort,
    ReadinessSourcePort,
)
from custody.domain.errors.export import ExportGenerationError
from custody.domain.models.export_job import ExportJob
from custody.domain.models.plan_tier import PlanTier
from custody.domain.models.projections import ReadinessSourceCounts


class OrganizationDirectoryStub(OrganizationDirectoryPort):
    def __init__(self, tiers: dict[UUID, PlanTier] | None = None) -> None:
        self._tiers: dict[UUID, PlanTier] = dict(tiers or {})

    def set_tier(self, organization_id: UUID, tier: PlanTier) -> None:
        self._tiers[organization_id] = tier

    async def list_organization_ids(self) -> list[UUID]:
        return sorted(self._tiers, key=str)

    async def get_plan_tier(self, organization_id: UUID) -> PlanTier:
        return self._tiers.get(organization_id, PlanTier.STARTER)


class ReadinessSourceStub(ReadinessSourcePort):
    def __init__(self) -> None:
        self._counts: dict[UUID, ReadinessSourceCounts] = {}
        self.calls = 0

    def set_counts(self, organization_id: UUID, counts: ReadinessSourceCounts) -> None:
        self._counts[organization_id] = counts

    async def get_counts(self, organization_id: UUID) -> ReadinessSourceCounts:
        self.calls += 1
        return self._counts.get(organization_id, ReadinessSourceCounts())


class ExportPayloadBuilderStub(ExportPayloadBuilderPort):
    """Builds small deterministic files; can be told to fail.

    Attributes:
        failures_remaining: Per-job count of upcoming builds that will fail.
        fail_always: Job ids whose builds always fail.
        builds: Number of build calls, per job.
    """

    def __init__(self) -> None:
        self.failures_remaining: dict[UUID, int] = {}
        self.fail_always: set[UUID] = set()
        self.builds: dict[UUID, int] = {}

    def fail_next(self, export_id: UUID, times: int = 1) -> None:
        self.failures_remaining[export_id] = times

    async def build(self, job: ExportJob) -> list[ExportFile]:
        self.builds[job.id] = self.builds.get(job.id, 0) + 1
        remaining = self.failures_remaining.get(job.id, 0)
        if job.id in self.fail_always or remaining > 0:
            if remaining > 0:
                self.failures_remaining[job.id] = remaining - 1
            raise ExportGenerationError(f"Simulated generation failure for {job.id}")

        summary = {
            "export_id": str(job.id),
            "export_type": job.export_type.value,
            "filters": job.filters,
        }
        return [
            ExportFile(
                name=f"{job.export_type.value}.json",
                content_type="application/json",
                content=json.dumps(summary, sort_keys=True).encode("utf-8"),
            )
        ]


class InMemoryArtifactStore(ArtifactStorePort):
    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}

    @property
    def paths(self) -> list[str]:
        return sorted(self._objects)

    async def put(self, path: str, data: bytes) -> str:
        self._objects[path] = data
        return path

    async def get(self, path: str) -> bytes | None:
        return self._objects.get(path)

    async def delete(self, path: str) -> None:
        self._objects.pop(path, None)
