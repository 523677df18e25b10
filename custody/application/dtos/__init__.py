"""Application-layer data transfer objects."""

from custody.application.dtos.merkle import MerkleProofDTO, MerkleProofEntryDTO
from custody.application.dtos.verification import (
    ChainStatus,
    EventVerificationDTO,
    ExportVerificationDTO,
    ManifestVerificationDTO,
    RootBatchResultDTO,
    RootVerificationDTO,
)

__all__ = [
    "ChainStatus",
    "EventVerificationDTO",
    "ExportVerificationDTO",
    "ManifestVerificationDTO",
    "MerkleProofDTO",
    "MerkleProofEntryDTO",
    "RootBatchResultDTO",
    "RootVerificationDTO",
]
