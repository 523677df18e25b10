"""Application services for Custody Core."""

from custody.application.services.base import LoggingMixin
from custody.application.services.command_runner import CommandRunner
from custody.application.services.export_claim_coordinator import (
    ExportClaimCoordinator,
)
from custody.application.services.export_metrics_service import (
    ExportMetricsService,
    ExportMetricsSnapshot,
)
from custody.application.services.export_service import ExportService
from custody.application.services.hash_verification_service import (
    HashVerificationService,
)
from custody.application.services.ledger_export_builder import LedgerExportBuilder
from custody.application.services.ledger_root_service import LedgerRootService
from custody.application.services.ledger_service import LedgerService
from custody.application.services.ledger_write_notifier import (
    LedgerWriteListener,
    LedgerWriteNotifier,
)
from custody.application.services.merkle_tree_service import MerkleTreeService
from custody.application.services.projection_service import ProjectionService
from custody.application.services.rate_limit_service import RateLimitService
from custody.application.services.retention_service import (
    RetentionResult,
    RetentionService,
)

__all__ = [
    "CommandRunner",
    "ExportClaimCoordinator",
    "ExportMetricsService",
    "ExportMetricsSnapshot",
    "ExportService",
    "HashVerificationService",
    "LedgerExportBuilder",
    "LedgerRootService",
    "LedgerService",
    "LedgerWriteListener",
    "LedgerWriteNotifier",
    "LoggingMixin",
    "MerkleTreeService",
    "ProjectionService",
    "RateLimitService",
    "RetentionResult",
    "RetentionService",
]
