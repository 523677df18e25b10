"""Export payloads built from the organization's own ledger.

Every export type carries the ledger entries its filters select, as JSON
(full records including hashes) and as CSV (one row per entry, for
spreadsheets). Exports scoped to a work record only include entries of
that record.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from custody.application.ports.external import ExportFile
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.domain.models.audit_filters import AuditFilters
from custody.domain.models.export_job import ExportJob
from custody.domain.models.ledger_entry import LedgerEntry

PAGE_SIZE = 500
MAX_EXPORT_ENTRIES = 50_000

CSV_COLUMNS = (
    "ledger_seq",
    "id",
    "created_at",
    "event_name",
    "category",
    "severity",
    "outcome",
    "actor_id",
    "target_type",
    "target_id",
    "job_id",
    "hash",
    "prev_hash",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _render_csv(entries: list[LedgerEntry]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        row = entry.to_dict()
        writer.writerow(["" if row[c] is None else row[c] for c in CSV_COLUMNS])
    return buffer.getvalue().encode("utf-8")


class LedgerExportBuilder(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        clock: Callable[[], datetime] = _utc_now,
        max_entries: int = MAX_EXPORT_ENTRIES,
    ) -> None:
        self._uow = uow
        self._clock = clock
        self._max_entries = max_entries
        self._init_logger(component="exports")

    async def build(self, job: ExportJob) -> list[ExportFile]:
        filters = AuditFilters.from_dict(job.filters)
        if job.work_record_id is not None:
            filters = replace(filters, job_id=job.work_record_id)

        entries = await self._collect(job, filters)
        # Oldest first reads naturally and matches the hash chain order
        entries.sort(key=lambda e: e.ledger_seq)

        document = {
            "export_id": str(job.id),
            "export_type": job.export_type.value,
            "organization_id": str(job.organization_id),
            "filters": filters.to_dict(),
            "entry_count": len(entries),
            "entries": [entry.to_dict() for entry in entries],
        }
        self._log_operation("build", export_id=str(job.id)).info(
            "export_payload_built", entry_count=len(entries)
        )
        return [
            ExportFile(
                name="ledger.json",
                content_type="application/json",
                content=json.dumps(document, sort_keys=True, indent=2).encode("utf-8"),
            ),
            ExportFile(
                name="ledger.csv",
                content_type="text/csv",
                content=_render_csv(entries),
            ),
        ]

    async def _collect(self, job: ExportJob, filters: AuditFilters) -> list[LedgerEntry]:
        now = self._clock()
        entries: list[LedgerEntry] = []
        offset = 0
        async with self._uow.begin() as tx:
            while len(entries) < self._max_entries:
                page = await tx.ledger.list_entries(
                    job.organization_id, filters, now, limit=PAGE_SIZE, offset=offset
                )
                entries.extend(page)
                if len(page) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        if len(entries) >= self._max_entries:
            self._log_operation("build", export_id=str(job.id)).warning(
                "export_payload_truncated", max_entries=self._max_entries
            )
            entries = entries[: self._max_entries]
        return entries
