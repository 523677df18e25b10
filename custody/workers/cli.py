"""Worker entry point.

Usage:
    custody-worker exports --concurrency 4
    custody-worker roots
    custody-worker roots --once --date 2026-01-31
    custody-worker retention --once
    custody-worker all

Configuration comes from the environment (see custody.config); a .env
file in the working directory is loaded first.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from datetime import date

import structlog
from dotenv import load_dotenv

from custody.bootstrap.container import CustodyContainer, build_container
from custody.infrastructure.observability.logging import configure_structlog
from custody.workers.base import StoppableWorker
from custody.workers.export_worker import ExportWorker
from custody.workers.ledger_root_worker import LedgerRootWorker
from custody.workers.retention_worker import RetentionWorker

logger = structlog.get_logger()

WORKER_KINDS = ("exports", "roots", "retention", "all")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custody-worker",
        description="Run Custody Core background workers.",
    )
    parser.add_argument("kind", choices=WORKER_KINDS, help="Which worker to run")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Export workers to run in this process (default: 1)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single iteration and exit",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Day to compute roots for with --once (default: yesterday, UTC)",
    )
    return parser


def build_workers(
    container: CustodyContainer, kind: str, concurrency: int
) -> list[StoppableWorker]:
    workers: list[StoppableWorker] = []
    if kind in ("exports", "all"):
        workers.extend(
            ExportWorker(container.claim_coordinator(), container.export_config)
            for _ in range(max(concurrency, 1))
        )
    if kind in ("roots", "all"):
        workers.append(
            LedgerRootWorker(
                container.roots,
                root_hour_utc=container.ledger_config.root_hour_utc,
                clock=container.clock,
            )
        )
    if kind in ("retention", "all"):
        workers.append(
            RetentionWorker(
                container.retention,
                container.export_config.retention_interval_seconds,
                export_metrics=container.export_metrics,
            )
        )
    return workers


async def run_workers(args: argparse.Namespace) -> int:
    container = build_container()
    workers = build_workers(container, args.kind, args.concurrency)
    log = logger.bind(component="workers", kind=args.kind)

    try:
        if args.once:
            for worker in workers:
                if isinstance(worker, LedgerRootWorker):
                    await worker.run_once(args.date)
                else:
                    await worker.run_once()
            return 0

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            for worker in workers:
                worker.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        log.info("workers_starting", count=len(workers))
        await asyncio.gather(*(worker.run() for worker in workers))
        return 0
    finally:
        await container.close()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_structlog(os.environ.get("ENVIRONMENT", "development"))
    return asyncio.run(run_workers(args))


if __name__ == "__main__":
    sys.exit(main())
