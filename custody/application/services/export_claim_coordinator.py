"""Export claim coordinator.

Lets any number of worker processes pull queued export jobs without
two of them ever working on the same job.

Lifecycle of one job, as seen by a worker:

    claim      queued -> preparing, `export.<type>.started` recorded
    generate   payload builder runs outside any transaction
    complete   preparing -> ready, `export.<type>.completed` recorded
    or fail    preparing -> queued (retry) or failed (third failure),
               `export.<type>.failed` recorded

The claim itself is a single atomic store operation that also enforces
the per-organization concurrency limit. Completion and failure writes
are compare-and-set on the version read at claim time; if the job was
canceled or swept while it was generating, the result is discarded and
the artifact deleted.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from custody.application.ports.external import (
    ArtifactStorePort,
    ExportPayloadBuilderPort,
)
from custody.application.ports.unit_of_work import TransactionPort, UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.ledger_write_notifier import LedgerWriteNotifier
from custody.application.services.export_packager import (
    pack_archive,
    seal_manifest,
    storage_path_for,
)
from custody.config.export_config import DEFAULT_EXPORT_QUEUE_CONFIG, ExportQueueConfig
from custody.domain.exceptions import CustodyError
from custody.domain.hash_utils import DEFAULT_HASH_SALT
from custody.domain.models.event_contracts import EventContractRegistry
from custody.domain.models.export_job import (
    EXPORT_GENERATION_FAILED,
    EXPORT_STUCK_TIMEOUT,
    ExportJob,
    ExportState,
    ExportType,
)
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerEntrySpec,
    LedgerOutcome,
    LedgerSeverity,
)
from custody.infrastructure.monitoring.metrics import get_metrics_collector


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def append_system_event(
    tx: TransactionPort,
    job: ExportJob,
    event_name: str,
    metadata: dict[str, Any],
    severity: LedgerSeverity = LedgerSeverity.INFO,
    outcome: LedgerOutcome = LedgerOutcome.SUCCESS,
) -> LedgerEntry:
    """Record an export lifecycle event with no acting user.

    Pass the returned entry to a LedgerWriteNotifier once the transaction
    commits.
    """
    spec = LedgerEntrySpec(
        event_name=event_name,
        target_type="export",
        target_id=str(job.id),
        job_id=job.work_record_id,
        category=LedgerCategory.SYSTEM,
        severity=severity,
        outcome=outcome,
        metadata={"export_id": str(job.id), **metadata},
    )
    entry = await tx.ledger.append(
        job.organization_id, None, EventContractRegistry.resolve(spec)
    )
    get_metrics_collector().increment_ledger_appends(entry.category.value)
    return entry


class ExportClaimCoordinator(LoggingMixin):
    """Claims, generates and settles export jobs.

    Attributes:
        worker_id: Identifies this worker in logs.
    """

    def __init__(
        self,
        uow: UnitOfWorkPort,
        builder: ExportPayloadBuilderPort,
        artifacts: ArtifactStorePort,
        config: ExportQueueConfig = DEFAULT_EXPORT_QUEUE_CONFIG,
        salt: str = DEFAULT_HASH_SALT,
        clock: Callable[[], datetime] = _utc_now,
        worker_id: str | None = None,
        notifier: LedgerWriteNotifier | None = None,
    ) -> None:
        self._uow = uow
        self._notifier = notifier or LedgerWriteNotifier()
        self._builder = builder
        self._artifacts = artifacts
        self._config = config
        self._salt = salt
        self._clock = clock
        self.worker_id = worker_id or f"export-worker-{uuid4().hex[:8]}"
        self._init_logger(component="exports")

    async def claim(self) -> ExportJob | None:
        """Claim the oldest claimable queued job, or None."""
        now = self._clock()
        async with self._uow.begin() as tx:
            job = await tx.exports.claim_next(self._config.max_concurrent_per_org, now)
            if job is None:
                return None
            started = await append_system_event(
                tx,
                job,
                f"export.{job.export_type.value}.started",
                {"attempt": job.failure_count + 1, "worker_id": self.worker_id},
            )

        await self._notifier.notify([started])
        get_metrics_collector().increment_export_claims(job.export_type.value)
        self._log_operation("claim", worker_id=self.worker_id).info(
            "export_claimed",
            export_id=str(job.id),
            organization_id=str(job.organization_id),
            attempt=job.failure_count + 1,
        )
        return job

    async def process(self, job: ExportJob) -> ExportJob:
        """Generate a claimed job and settle it.

        Never raises for generation failures; they are recorded on the
        job. Returns the job as stored afterwards.
        """
        log = self._log_operation(
            "process", worker_id=self.worker_id, export_id=str(job.id)
        )
        started = time.monotonic()
        path = storage_path_for(job)
        try:
            files = await self._builder.build(job)
            manifest, manifest_hash = seal_manifest(
                job, files, self._clock(), self._salt
            )
            await self._artifacts.put(path, pack_archive(files, manifest, manifest_hash))
        except Exception as e:
            code = e.code if isinstance(e, CustodyError) else EXPORT_GENERATION_FAILED
            log.warning(
                "export_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            settled, _ = await self._record_failure(job, code, str(e))
            return settled

        get_metrics_collector().observe_export_generation(
            job.export_type.value, time.monotonic() - started
        )
        return await self._record_success(job, path, manifest, manifest_hash, len(files))

    async def run_once(self) -> ExportJob | None:
        """Claim and process one job. Returns the settled job, or None if idle."""
        job = await self.claim()
        if job is None:
            return None
        return await self.process(job)

    async def sweep_stuck(self) -> int:
        """Return jobs stuck in preparing past the timeout to the queue.

        A stuck attempt counts as a failure, so a job that keeps hanging
        the worker ends up parked in failed like any other poison pill.
        """
        cutoff = self._clock() - timedelta(seconds=self._config.stuck_timeout_seconds)
        async with self._uow.begin() as tx:
            stuck = await tx.exports.list_stuck(cutoff)

        swept = 0
        for job in stuck:
            _, applied = await self._record_failure(
                job,
                EXPORT_STUCK_TIMEOUT,
                f"No result within {self._config.stuck_timeout_seconds}s",
            )
            if applied:
                swept += 1
        if swept:
            self._log_operation("sweep_stuck").info("stuck_exports_swept", count=swept)
        return swept

    async def _record_success(
        self,
        job: ExportJob,
        path: str,
        manifest: dict[str, Any],
        manifest_hash: str,
        file_count: int,
    ) -> ExportJob:
        log = self._log_operation(
            "complete", worker_id=self.worker_id, export_id=str(job.id)
        )
        ready = job.completed(path, manifest, manifest_hash, self._clock())
        current: ExportJob | None = None
        entries: list[LedgerEntry] = []

        async with self._uow.begin() as tx:
            tx.on_rollback(lambda: self._artifacts.delete(path))
            if not await tx.exports.save(ready, job.version):
                current = await tx.exports.get(job.id)
                stale = True
            else:
                stale = False
                completed = await append_system_event(
                    tx,
                    ready,
                    f"export.{job.export_type.value}.completed",
                    {"manifest_hash": manifest_hash, "file_count": file_count},
                )
                entries.append(completed)
                if job.export_type == ExportType.PROOF_PACK:
                    generated = await append_system_event(
                        tx,
                        ready,
                        "export.pack.generated",
                        {
                            "pack_id": str(job.id),
                            "format": "zip",
                            "export_type": job.export_type.value,
                            "manifest_hash": manifest_hash,
                        },
                    )
                    entries.append(generated)

        if stale:
            # Canceled or swept while generating; the newer state wins
            await self._artifacts.delete(path)
            log.info(
                "export_result_discarded",
                current_state=current.state.value if current else None,
            )
            return current or job

        await self._notifier.notify(entries)
        log.info("export_completed", manifest_hash=manifest_hash, file_count=file_count)
        return ready

    async def _record_failure(
        self, job: ExportJob, error_code: str, error_message: str
    ) -> tuple[ExportJob, bool]:
        """Record a failed attempt.

        Returns the job as stored and whether this failure was applied.
        """
        log = self._log_operation(
            "fail", worker_id=self.worker_id, export_id=str(job.id)
        )
        failed = job.attempt_failed(
            error_code, error_message, self._clock(), self._config.max_failures
        )
        poisoned = failed.state == ExportState.FAILED

        async with self._uow.begin() as tx:
            if not await tx.exports.save(failed, job.version):
                current = await tx.exports.get(job.id)
                log.info(
                    "export_failure_discarded",
                    current_state=current.state.value if current else None,
                )
                return current or job, False
            entry = await append_system_event(
                tx,
                failed,
                f"export.{job.export_type.value}.failed",
                {
                    "error_code": error_code,
                    "failure_count": failed.failure_count,
                    "will_retry": not poisoned,
                },
                severity=LedgerSeverity.MATERIAL,
                outcome=LedgerOutcome.FAILED,
            )

        await self._notifier.notify([entry])
        get_metrics_collector().increment_export_attempt_failures(
            job.export_type.value, "poison_pill" if poisoned else "retry"
        )
        if poisoned:
            log.error(
                "export_poison_pill",
                failure_count=failed.failure_count,
                error_code=error_code,
            )
        else:
            log.warning(
                "export_attempt_failed",
                failure_count=failed.failure_count,
                error_code=error_code,
            )
        return failed, True
