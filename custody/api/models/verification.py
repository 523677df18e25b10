"""Verification API models."""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from custody.api.models.common import DateTimeWithZ
from custody.application.dtos.merkle import MerkleProofDTO
from custody.application.dtos.verification import (
    ChainStatus,
    EventVerificationDTO,
    ExportVerificationDTO,
    ManifestVerificationDTO,
    RootVerificationDTO,
)


class MerkleProofEntryModel(BaseModel):
    level: int
    position: Literal["left", "right"]
    sibling_hash: str


class MerkleProofModel(BaseModel):
    leaf_index: int
    leaf_hash: str
    root: str
    path: list[MerkleProofEntryModel]

    @classmethod
    def from_dto(cls, proof: MerkleProofDTO) -> "MerkleProofModel":
        return cls(
            leaf_index=proof.leaf_index,
            leaf_hash=proof.leaf_hash,
            root=proof.root,
            path=[
                MerkleProofEntryModel(
                    level=p.level, position=p.position, sibling_hash=p.sibling_hash
                )
                for p in proof.path
            ],
        )


class ExportVerificationResponse(BaseModel):
    """Public verification result for an export token.

    `verified` is true only when the manifest recomputes to the sealed
    hash and the ledger holds the completion entry that sealed it.
    """

    verified: bool
    export_id: UUID
    export_type: str
    manifest_hash: str
    computed_manifest_hash: str
    manifest_match: bool
    ledger_match: bool
    ledger_entry_id: UUID | None = None
    chain_status: ChainStatus
    merkle_root: str | None = None
    proof: MerkleProofModel | None = None
    verified_at: DateTimeWithZ
    expires_at: DateTimeWithZ

    @classmethod
    def from_dto(cls, dto: ExportVerificationDTO) -> "ExportVerificationResponse":
        return cls(
            verified=dto.verified,
            export_id=dto.export_id,
            export_type=dto.export_type,
            manifest_hash=dto.manifest_hash,
            computed_manifest_hash=dto.computed_manifest_hash,
            manifest_match=dto.manifest_match,
            ledger_match=dto.ledger_match,
            ledger_entry_id=dto.ledger_entry_id,
            chain_status=dto.chain_status,
            merkle_root=dto.merkle_root,
            proof=MerkleProofModel.from_dto(dto.proof) if dto.proof else None,
            verified_at=dto.verified_at,
            expires_at=dto.expires_at,
        )


class ManifestVerifyRequest(BaseModel):
    manifest: dict[str, Any] = Field(
        ..., description="manifest.json from the export archive"
    )
    manifest_hash: str | None = Field(
        default=None, description="Hash the client expects the manifest to have"
    )
    export_id: UUID | None = Field(
        default=None, description="Export the manifest claims to belong to"
    )


class ManifestVerificationResponse(BaseModel):
    manifest_hash: str
    claimed_hash: str | None = None
    hash_match: bool | None = None
    export_id: UUID | None = None
    export_match: bool
    stored_manifest_hash: str | None = None
    export_state: str | None = None
    ledger_match: bool
    ledger_entry_id: UUID | None = None
    verified_at: DateTimeWithZ

    @classmethod
    def from_dto(cls, dto: ManifestVerificationDTO) -> "ManifestVerificationResponse":
        return cls(**dto.__dict__)


class EventVerificationResponse(BaseModel):
    event_id: UUID
    ledger_seq: int
    stored_hash: str
    computed_hash: str
    hash_matches: bool
    prev_hash: str | None = None
    prev_exists: bool
    prev_hash_valid: bool
    chain_ok: bool
    chain_depth_checked: int
    broken_at: UUID | None = None
    verified_at: DateTimeWithZ

    @classmethod
    def from_dto(cls, dto: EventVerificationDTO) -> "EventVerificationResponse":
        return cls(**dto.__dict__)


class RootVerificationResponse(BaseModel):
    organization_id: UUID
    date: str = Field(..., description="UTC day, YYYY-MM-DD")
    stored_root: str | None = None
    computed_root: str | None = None
    event_count: int
    valid: bool
    verified_at: DateTimeWithZ
    altered_entry_ids: list[UUID] = Field(
        default_factory=list,
        description="Entries whose content no longer matches their stored hash",
    )

    @classmethod
    def from_dto(cls, dto: RootVerificationDTO) -> "RootVerificationResponse":
        return cls(
            organization_id=dto.organization_id,
            date=dto.date.isoformat(),
            stored_root=dto.stored_root,
            computed_root=dto.computed_root,
            event_count=dto.event_count,
            valid=dto.valid,
            verified_at=dto.verified_at,
            altered_entry_ids=list(dto.altered_entry_ids),
        )
