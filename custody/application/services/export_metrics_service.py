"""Export queue metrics.

Read-only aggregation over export jobs: queue depth by state, average
time the current jobs have spent in their state, and the failure rate
per export type. The snapshot also refreshes the Prometheus gauges.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.domain.models.export_job import EXPORT_POISON_PILL, ExportState, ExportType
from custody.infrastructure.monitoring.metrics import get_metrics_collector

METRICS_SCAN_LIMIT = 10_000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExportMetricsSnapshot:
    queue_depth: dict[str, int]
    avg_time_in_state_seconds: dict[str, float]
    failure_rate: dict[str, float]
    computed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_depth": self.queue_depth,
            "avg_time_in_state_seconds": self.avg_time_in_state_seconds,
            "failure_rate": self.failure_rate,
            "computed_at": self.computed_at.isoformat(),
        }


class ExportMetricsService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._clock = clock
        self._init_logger(component="exports")

    async def snapshot(self) -> ExportMetricsSnapshot:
        now = self._clock()
        async with self._uow.begin() as tx:
            jobs = await tx.exports.list_by_state(set(ExportState), limit=METRICS_SCAN_LIMIT)

        depth = Counter(job.state.value for job in jobs)
        waited: dict[str, list[float]] = defaultdict(list)
        failed: Counter[str] = Counter()
        succeeded: Counter[str] = Counter()
        for job in jobs:
            changed = job.state_changed_at or job.requested_at
            waited[job.state.value].append(max(0.0, (now - changed).total_seconds()))
            if job.error_code == EXPORT_POISON_PILL:
                failed[job.export_type.value] += 1
            elif job.manifest_hash is not None:
                succeeded[job.export_type.value] += 1

        queue_depth = {state.value: depth.get(state.value, 0) for state in ExportState}
        avg_time = {
            state: sum(values) / len(values) for state, values in waited.items()
        }
        failure_rate = {}
        for export_type in ExportType:
            settled = failed[export_type.value] + succeeded[export_type.value]
            failure_rate[export_type.value] = (
                failed[export_type.value] / settled if settled else 0.0
            )

        metrics = get_metrics_collector()
        for state, count in queue_depth.items():
            metrics.set_export_queue_depth(state, count)
        for state, seconds in avg_time.items():
            metrics.set_export_time_in_state(state, seconds)
        for export_type, rate in failure_rate.items():
            metrics.set_export_failure_rate(export_type, rate)

        return ExportMetricsSnapshot(
            queue_depth=queue_depth,
            avg_time_in_state_seconds=avg_time,
            failure_rate=failure_rate,
            computed_at=now,
        )
