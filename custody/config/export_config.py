"""Export queue configuration.

Environment Variables:
- CUSTODY_EXPORT_MAX_CONCURRENT_PER_ORG: Jobs one organization may have
  in preparing at once (default: 3)
- CUSTODY_EXPORT_MAX_FAILURES: Failed attempts before a job is parked in
  failed (default: 3)
- CUSTODY_EXPORT_POLL_INTERVAL: Worker poll interval in seconds (default: 5.0)
- CUSTODY_EXPORT_STUCK_TIMEOUT: Seconds a job may stay in preparing
  before the sweep returns it to the queue (default: 900)
- CUSTODY_EXPORT_RETENTION_INTERVAL: Seconds between retention sweeps
  (default: 3600)
- CUSTODY_EXPORT_CREATE_RATE_LIMIT: Export requests per organization per
  minute (default: 30)
- CUSTODY_EXPORT_STORAGE_DIR: Directory for export archives when the
  filesystem artifact store is used (default: ./var/exports)
"""

from __future__ import annotations

from dataclasses import dataclass

from custody.config._env import _get_float_env, _get_int_env, _get_str_env


@dataclass(frozen=True)
class ExportQueueConfig:
    """Configuration for export claiming, retries and retention.

    Attributes:
        max_concurrent_per_org: Per-organization preparing limit N.
        max_failures: Poison pill threshold.
        poll_interval_seconds: How long an idle worker sleeps.
        stuck_timeout_seconds: Age after which a preparing job is swept.
        retention_interval_seconds: Period of the retention worker.
        create_rate_limit_per_minute: Export requests per org per minute.
        storage_dir: Filesystem artifact store root.
    """

    max_concurrent_per_org: int = 3
    max_failures: int = 3
    poll_interval_seconds: float = 5.0
    stuck_timeout_seconds: int = 900
    retention_interval_seconds: int = 3600
    create_rate_limit_per_minute: int = 30
    storage_dir: str = "./var/exports"

    def __post_init__(self) -> None:
        if self.max_concurrent_per_org < 1:
            raise ValueError(
                f"max_concurrent_per_org must be positive, got {self.max_concurrent_per_org}"
            )
        if self.max_failures < 1:
            raise ValueError(f"max_failures must be positive, got {self.max_failures}")
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            )
        if self.stuck_timeout_seconds < 1:
            raise ValueError(
                f"stuck_timeout_seconds must be positive, got {self.stuck_timeout_seconds}"
            )
        if self.retention_interval_seconds < 1:
            raise ValueError(
                "retention_interval_seconds must be positive, "
                f"got {self.retention_interval_seconds}"
            )
        if self.create_rate_limit_per_minute < 1:
            raise ValueError(
                "create_rate_limit_per_minute must be positive, "
                f"got {self.create_rate_limit_per_minute}"
            )

    @classmethod
    def from_environment(cls) -> "ExportQueueConfig":
        return cls(
            max_concurrent_per_org=_get_int_env(
                "CUSTODY_EXPORT_MAX_CONCURRENT_PER_ORG", 3
            ),
            max_failures=_get_int_env("CUSTODY_EXPORT_MAX_FAILURES", 3),
            poll_interval_seconds=_get_float_env("CUSTODY_EXPORT_POLL_INTERVAL", 5.0),
            stuck_timeout_seconds=_get_int_env("CUSTODY_EXPORT_STUCK_TIMEOUT", 900),
            retention_interval_seconds=_get_int_env(
                "CUSTODY_EXPORT_RETENTION_INTERVAL", 3600
            ),
            create_rate_limit_per_minute=_get_int_env(
                "CUSTODY_EXPORT_CREATE_RATE_LIMIT", 30
            ),
            storage_dir=_get_str_env("CUSTODY_EXPORT_STORAGE_DIR", "./var/exports"),
        )


DEFAULT_EXPORT_QUEUE_CONFIG = ExportQueueConfig()

# Fast polling and a short stuck timeout for unit tests
TEST_EXPORT_QUEUE_CONFIG = ExportQueueConfig(
    poll_interval_seconds=0.01,
    stuck_timeout_seconds=60,
    retention_interval_seconds=1,
)
