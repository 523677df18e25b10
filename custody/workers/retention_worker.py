"""Retention worker.

Periodically expires ready and failed exports past their plan tier's
retention window, deletes their archives and purges expired idempotency
records. After each sweep it refreshes the export queue gauges.
"""

from __future__ import annotations

from custody.application.services.export_metrics_service import ExportMetricsService
from custody.application.services.retention_service import (
    RetentionResult,
    RetentionService,
)
from custody.workers.base import StoppableWorker


class RetentionWorker(StoppableWorker):
    def __init__(
        self,
        retention: RetentionService,
        interval_seconds: float,
        export_metrics: ExportMetricsService | None = None,
    ) -> None:
        super().__init__("retention")
        self._retention = retention
        self._interval = interval_seconds
        self._export_metrics = export_metrics
        self.last_result: RetentionResult | None = None

    async def run_once(self) -> RetentionResult:
        result = await self._retention.sweep()
        self.last_result = result
        if self._export_metrics is not None:
            await self._export_metrics.snapshot()
        return result

    async def run(self) -> None:
        self._running = True
        self._log.info("retention_worker_started", interval_seconds=self._interval)
        try:
            while self._running:
                try:
                    await self.run_once()
                except Exception as e:
                    self._log.exception(
                        "retention_sweep_failed", error_type=type(e).__name__
                    )
                await self._sleep(self._interval)
        finally:
            self._running = False
            self._log.info("retention_worker_stopped")
