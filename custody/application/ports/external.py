"""Ports to collaborators outside this service.

Organization directory, readiness counts from domain tables, export
payload generation and artifact storage are owned elsewhere. Custody
Core depends only on these protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from custody.domain.models.export_job import ExportJob
from custody.domain.models.plan_tier import PlanTier
from custody.domain.models.projections import ReadinessSourceCounts


@dataclass(frozen=True)
class ExportFile:
    """One generated file to be packed into an export archive."""

    name: str
    content_type: str
    content: bytes


class OrganizationDirectoryPort(Protocol):
    async def list_organization_ids(self) -> list[UUID]:
        ...

    async def get_plan_tier(self, organization_id: UUID) -> PlanTier:
        ...


class ReadinessSourcePort(Protocol):
    async def get_counts(self, organization_id: UUID) -> ReadinessSourceCounts:
        ...


class ExportPayloadBuilderPort(Protocol):
    async def build(self, job: ExportJob) -> list[ExportFile]:
        """Generate the files for an export.

        Raises:
            ExportGenerationError: Or any exception, on failure. The
                coordinator counts every exception as a failed attempt.
        """
        ...


class ArtifactStorePort(Protocol):
    async def put(self, path: str, data: bytes) -> str:
        """Store bytes and return the storage path."""
        ...

    async def get(self, path: str) -> bytes | None:
        ...

    async def delete(self, path: str) -> None:
        ...
