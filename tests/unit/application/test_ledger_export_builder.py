"""Unit tests for LedgerExportBuilder."""

import csv
import io
import json
from uuid import UUID, uuid4

import pytest

from custody.application.services.ledger_export_builder import (
    CSV_COLUMNS,
    LedgerExportBuilder,
)
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.event_contracts import EventContractRegistry
from custody.domain.models.export_job import ExportJob, ExportType
from custody.domain.models.ledger_entry import LedgerCategory, LedgerEntrySpec
from custody.infrastructure.stubs import InMemoryUnitOfWork
from tests.helpers import FakeClock


async def _record(
    uow: InMemoryUnitOfWork, org_id: UUID, event: str, **kwargs
) -> None:
    spec = EventContractRegistry.resolve(LedgerEntrySpec(event, **kwargs))
    await uow.ledger.append(org_id, None, spec)


@pytest.fixture
def export_builder(uow: InMemoryUnitOfWork, clock: FakeClock) -> LedgerExportBuilder:
    return LedgerExportBuilder(uow, clock=clock)


def _files(files) -> dict[str, bytes]:
    return {f.name: f.content for f in files}


class TestLedgerExportBuilder:
    async def test_builds_json_and_csv(
        self,
        export_builder: LedgerExportBuilder,
        uow: InMemoryUnitOfWork,
        org_id: UUID,
    ) -> None:
        """Both files list the organization's entries oldest first."""
        await _record(uow, org_id, "job.created", target_id="a")
        await _record(uow, org_id, "job.completed", target_id="a")
        await _record(uow, uuid4(), "job.created")
        job = ExportJob.create(org_id, ExportType.LEDGER)

        files = _files(await export_builder.build(job))

        document = json.loads(files["ledger.json"])
        assert document["entry_count"] == 2
        assert [e["event_name"] for e in document["entries"]] == [
            "job.created",
            "job.completed",
        ]
        rows = list(csv.reader(io.StringIO(files["ledger.csv"].decode("utf-8"))))
        assert tuple(rows[0]) == CSV_COLUMNS
        assert len(rows) == 3
        assert rows[1][CSV_COLUMNS.index("hash")] == document["entries"][0]["hash"]

    async def test_applies_job_filters(
        self,
        export_builder: LedgerExportBuilder,
        uow: InMemoryUnitOfWork,
        org_id: UUID,
    ) -> None:
        await _record(uow, org_id, "job.created")
        await _record(uow, org_id, "policy.denied", metadata={"policy_statement": "no"})
        filters = AuditFilters(category=LedgerCategory.GOVERNANCE).to_dict()
        job = ExportJob.create(org_id, ExportType.CONTROLS, filters=filters)

        document = json.loads(_files(await export_builder.build(job))["ledger.json"])

        assert [e["event_name"] for e in document["entries"]] == ["policy.denied"]
        assert document["filters"]["category"] == "governance"

    async def test_work_record_scope(
        self,
        export_builder: LedgerExportBuilder,
        uow: InMemoryUnitOfWork,
        org_id: UUID,
    ) -> None:
        """A work-record export only includes that record's entries."""
        record = uuid4()
        await _record(uow, org_id, "job.created", job_id=record)
        await _record(uow, org_id, "job.created", job_id=uuid4())
        job = ExportJob.create(org_id, ExportType.PROOF_PACK, work_record_id=record)

        document = json.loads(_files(await export_builder.build(job))["ledger.json"])

        assert document["entry_count"] == 1
        assert document["entries"][0]["job_id"] == str(record)

    async def test_truncates_at_max_entries(
        self, uow: InMemoryUnitOfWork, clock: FakeClock, org_id: UUID
    ) -> None:
        for _ in range(5):
            await _record(uow, org_id, "job.created")
        builder = LedgerExportBuilder(uow, clock=clock, max_entries=3)

        files = _files(await builder.build(ExportJob.create(org_id, ExportType.LEDGER)))

        assert json.loads(files["ledger.json"])["entry_count"] == 3

    async def test_empty_ledger_still_builds(
        self, export_builder: LedgerExportBuilder, org_id: UUID
    ) -> None:
        files = _files(
            await export_builder.build(ExportJob.create(org_id, ExportType.LEDGER))
        )

        assert json.loads(files["ledger.json"])["entries"] == []
        assert files["ledger.csv"].decode("utf-8").splitlines() == [",".join(CSV_COLUMNS)]
