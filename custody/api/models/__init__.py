"""Pydantic request/response models for the Custody Core API."""

from custody.api.models.common import DateTimeWithZ, ErrorDetail, ErrorResponse
from custody.api.models.exports import (
    ExportCreateRequest,
    ExportJobResponse,
    ExportMetricsResponse,
)
from custody.api.models.filters import AuditFiltersModel
from custody.api.models.health import HealthResponse
from custody.api.models.ledger import (
    CategoryProjectionModel,
    LedgerEntryResponse,
    LedgerEventListResponse,
    ReadinessResponse,
)
from custody.api.models.verification import (
    EventVerificationResponse,
    ExportVerificationResponse,
    ManifestVerificationResponse,
    ManifestVerifyRequest,
    MerkleProofModel,
    RootVerificationResponse,
)

__all__ = [
    "AuditFiltersModel",
    "CategoryProjectionModel",
    "DateTimeWithZ",
    "ErrorDetail",
    "ErrorResponse",
    "EventVerificationResponse",
    "ExportCreateRequest",
    "ExportJobResponse",
    "ExportMetricsResponse",
    "ExportVerificationResponse",
    "HealthResponse",
    "LedgerEntryResponse",
    "LedgerEventListResponse",
    "ManifestVerificationResponse",
    "ManifestVerifyRequest",
    "MerkleProofModel",
    "ReadinessResponse",
    "RootVerificationResponse",
]
