"""Configuration for Custody Core.

Available Configurations:
- ExportQueueConfig: Claiming, retries, retention
- LedgerConfig: Hash salt, root schedule, idempotency TTL, projections
- ApiConfig: Storage backend, Redis, public verification limits
"""

from custody.config.api_config import ApiConfig
from custody.config.export_config import (
    DEFAULT_EXPORT_QUEUE_CONFIG,
    TEST_EXPORT_QUEUE_CONFIG,
    ExportQueueConfig,
)
from custody.config.ledger_config import DEFAULT_LEDGER_CONFIG, LedgerConfig

__all__ = [
    "ApiConfig",
    "DEFAULT_EXPORT_QUEUE_CONFIG",
    "DEFAULT_LEDGER_CONFIG",
    "ExportQueueConfig",
    "LedgerConfig",
    "TEST_EXPORT_QUEUE_CONFIG",
]
