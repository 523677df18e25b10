"""Export worker.

Pulls queued export jobs through the claim coordinator until stopped.
Any number of these may run, in one process or many; the claim keeps
them from ever working the same job. Every `sweep_interval_seconds` the
worker also returns jobs stuck in preparing to the queue.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from custody.application.services.export_claim_coordinator import (
    ExportClaimCoordinator,
)
from custody.config.export_config import DEFAULT_EXPORT_QUEUE_CONFIG, ExportQueueConfig
from custody.domain.models.export_job import ExportState
from custody.workers.base import StoppableWorker

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


@dataclass
class ExportWorkerMetrics:
    jobs_processed: int = 0
    jobs_ready: int = 0
    jobs_requeued: int = 0
    jobs_failed: int = 0
    idle_polls: int = 0
    iteration_errors: int = 0
    jobs_swept: int = 0
    last_job_time: float | None = None


class ExportWorker(StoppableWorker):
    def __init__(
        self,
        coordinator: ExportClaimCoordinator,
        config: ExportQueueConfig = DEFAULT_EXPORT_QUEUE_CONFIG,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        super().__init__(coordinator.worker_id)
        self._coordinator = coordinator
        self._config = config
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep: float | None = None
        self.metrics = ExportWorkerMetrics()

    async def run_once(self) -> bool:
        """One iteration: sweep if due, then claim and process one job.

        Returns:
            True if a job was processed, False if the queue had nothing
            claimable.
        """
        now = time.monotonic()
        if self._last_sweep is None or now - self._last_sweep >= self._sweep_interval:
            self._last_sweep = now
            self.metrics.jobs_swept += await self._coordinator.sweep_stuck()

        job = await self._coordinator.run_once()
        if job is None:
            self.metrics.idle_polls += 1
            return False

        self.metrics.jobs_processed += 1
        self.metrics.last_job_time = time.monotonic()
        if job.state == ExportState.READY:
            self.metrics.jobs_ready += 1
        elif job.state == ExportState.QUEUED:
            self.metrics.jobs_requeued += 1
        elif job.state == ExportState.FAILED:
            self.metrics.jobs_failed += 1
        return True

    async def run(self) -> None:
        """Run until stop() is called.

        A failing iteration (database unavailable, storage down) is logged
        and retried after the poll interval; it never ends the loop.
        """
        self._running = True
        self._log.info(
            "export_worker_started",
            poll_interval=self._config.poll_interval_seconds,
            max_concurrent_per_org=self._config.max_concurrent_per_org,
        )
        try:
            while self._running:
                try:
                    processed = await self.run_once()
                except Exception as e:
                    self.metrics.iteration_errors += 1
                    self._log.exception(
                        "export_worker_iteration_failed", error_type=type(e).__name__
                    )
                    processed = False
                if not processed:
                    await self._sleep(self._config.poll_interval_seconds)
        finally:
            self._running = False
            self._log.info("export_worker_stopped", **self.get_metrics())

    def get_metrics(self) -> dict[str, Any]:
        return {
            "worker_id": self.name,
            "jobs_processed": self.metrics.jobs_processed,
            "jobs_ready": self.metrics.jobs_ready,
            "jobs_requeued": self.metrics.jobs_requeued,
            "jobs_failed": self.metrics.jobs_failed,
            "jobs_swept": self.metrics.jobs_swept,
            "idle_polls": self.metrics.idle_polls,
            "iteration_errors": self.metrics.iteration_errors,
            "running": self._running,
        }
