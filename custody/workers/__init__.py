"""Background workers: export claiming, daily ledger roots, retention."""

from custody.workers.export_worker import ExportWorker, ExportWorkerMetrics
from custody.workers.ledger_root_worker import (
    LedgerRootWorker,
    next_run_at,
    previous_utc_day,
)
from custody.workers.retention_worker import RetentionWorker

__all__ = [
    "ExportWorker",
    "ExportWorkerMetrics",
    "LedgerRootWorker",
    "RetentionWorker",
    "next_run_at",
    "previous_utc_day",
]
