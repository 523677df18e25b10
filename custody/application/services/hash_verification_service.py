"""Hash verification engine.

Lets an auditor confirm that an exported pack and the ledger behind it
were not altered:

- `verify_export_token`: public, token-scoped. Recomputes the sealed
  manifest hash, checks the ledger holds the matching completion entry,
  and reports whether that entry is anchored in a daily Merkle root.
- `verify_manifest`: recomputes the hash of a manifest a client holds
  and compares it with what the export and the ledger recorded.
- `verify_event`: rehashes one ledger entry and walks a bounded number
  of previous links of its organization's chain.

All hashing goes through `custody.domain.hash_utils`, the same functions
the writers use.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from custody.application.dtos.verification import (
    ChainStatus,
    EventVerificationDTO,
    ExportVerificationDTO,
    ManifestVerificationDTO,
)
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.ledger_root_service import LedgerRootService
from custody.application.services.merkle_tree_service import MerkleTreeService
from custody.domain.errors.ledger import LedgerEntryNotFoundError
from custody.domain.errors.verification import (
    ManifestMissingError,
    VerificationTokenExpiredError,
    VerificationTokenNotFoundError,
)
from custody.domain.hash_utils import DEFAULT_HASH_SALT, compute_manifest_hash
from custody.domain.models.export_job import ExportJob, ExportState
from custody.domain.models.ledger_entry import LedgerEntry

DEFAULT_EVENT_VERIFY_DEPTH = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def completed_event_name(export_type: str) -> str:
    return f"export.{export_type}.completed"


class HashVerificationService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        roots: LedgerRootService,
        salt: str = DEFAULT_HASH_SALT,
        merkle: MerkleTreeService | None = None,
        event_verify_depth: int = DEFAULT_EVENT_VERIFY_DEPTH,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._roots = roots
        self._salt = salt
        self._merkle = merkle or MerkleTreeService()
        self._event_verify_depth = event_verify_depth
        self._clock = clock
        self._init_logger(component="verification")

    async def verify_export_token(self, token: str) -> ExportVerificationDTO:
        """Verify the export a public token is bound to.

        Raises:
            VerificationTokenNotFoundError: Unknown token, or export not ready.
            VerificationTokenExpiredError: Token past its 30-day window.
            ManifestMissingError: Ready export without a sealed manifest.
        """
        now = self._clock()
        log = self._log_operation("verify_export_token")

        async with self._uow.begin() as tx:
            job = await tx.exports.get_by_verification_token(token) if token else None
            if job is None or job.state != ExportState.READY:
                log.info("verification_token_not_found")
                raise VerificationTokenNotFoundError()
            if now >= job.verification_expires_at:
                log.info("verification_token_expired", export_id=str(job.id))
                raise VerificationTokenExpiredError(job.verification_expires_at)
            if job.manifest is None or job.manifest_hash is None:
                raise ManifestMissingError(f"Export {job.id} has no sealed manifest")

            entry = await self._completion_entry(tx, job)

        computed = compute_manifest_hash(job.manifest, self._salt)
        manifest_match = computed == job.manifest_hash
        ledger_match = entry is not None and self._entry_seals(entry, job.manifest_hash)

        chain_status = ChainStatus.MISSING
        merkle_root = None
        proof = None
        if entry is not None:
            root, proof = await self._roots.inclusion_proof(entry)
            if root is None:
                chain_status = ChainStatus.PENDING
            else:
                merkle_root = root.merkle_root
                anchored = proof is not None and self._merkle.verify_proof(
                    proof.leaf_hash, list(proof.path), root.merkle_root
                )
                chain_status = ChainStatus.ANCHORED if anchored else ChainStatus.MISMATCH

        log.info(
            "export_verified",
            export_id=str(job.id),
            manifest_match=manifest_match,
            ledger_match=ledger_match,
            chain_status=chain_status.value,
        )
        return ExportVerificationDTO(
            export_id=job.id,
            organization_id=job.organization_id,
            export_type=job.export_type.value,
            manifest_hash=job.manifest_hash,
            computed_manifest_hash=computed,
            manifest_match=manifest_match,
            ledger_match=ledger_match,
            ledger_entry_id=entry.id if entry else None,
            chain_status=chain_status,
            merkle_root=merkle_root,
            proof=proof,
            verified_at=now,
            expires_at=job.verification_expires_at,
        )

    async def verify_manifest(
        self,
        organization_id: UUID,
        manifest: Mapping[str, Any],
        claimed_hash: str | None = None,
        export_id: UUID | None = None,
    ) -> ManifestVerificationDTO:
        """Hash a client-held manifest and compare it with the records.

        Raises:
            ValueError: If the manifest lacks a version or a files list.
        """
        if not manifest.get("version") or not isinstance(manifest.get("files"), list):
            raise ValueError("Manifest must have a version and a files array")

        computed = compute_manifest_hash(manifest, self._salt)
        job: ExportJob | None = None
        entry: LedgerEntry | None = None
        if export_id is not None:
            async with self._uow.begin() as tx:
                job = await tx.exports.get_for_organization(organization_id, export_id)
                if job is not None:
                    entry = await self._completion_entry(tx, job)

        ledger_match = entry is not None and self._entry_seals(entry, computed)
        return ManifestVerificationDTO(
            manifest_hash=computed,
            claimed_hash=claimed_hash,
            hash_match=None if claimed_hash is None else claimed_hash == computed,
            export_id=export_id,
            export_match=job is not None and job.manifest_hash == computed,
            stored_manifest_hash=job.manifest_hash if job else None,
            export_state=job.state.value if job else None,
            ledger_match=ledger_match,
            ledger_entry_id=entry.id if ledger_match and entry else None,
            verified_at=self._clock(),
        )

    async def verify_event(
        self,
        organization_id: UUID,
        entry_id: UUID,
        depth: int | None = None,
    ) -> EventVerificationDTO:
        """Rehash one entry and walk up to `depth` links behind it.

        Raises:
            LedgerEntryNotFoundError: If the entry does not exist for the
                organization.
        """
        depth = self._event_verify_depth if depth is None else depth
        async with self._uow.begin() as tx:
            entry = await tx.ledger.get(organization_id, entry_id)
            if entry is None:
                raise LedgerEntryNotFoundError(f"Ledger event {entry_id} not found")
            preceding = await tx.ledger.list_preceding(
                organization_id, entry.ledger_seq, depth + 1
            )

        computed = entry.recompute_hash(self._salt)
        hash_matches = computed == entry.hash

        prev = preceding[0] if preceding else None
        if entry.prev_hash is None:
            prev_hash_valid = prev is None
        else:
            prev_hash_valid = prev is not None and prev.hash == entry.prev_hash

        # Walk backwards: each link must rehash and point at the one before it
        chain_ok = hash_matches and prev_hash_valid
        broken_at: UUID | None = None if chain_ok else entry.id
        checked = 0
        for index, link in enumerate(preceding[:depth]):
            if not chain_ok:
                break
            checked += 1
            before = preceding[index + 1] if index + 1 < len(preceding) else None
            link_ok = link.recompute_hash(self._salt) == link.hash
            if before is not None:
                link_ok = link_ok and link.prev_hash == before.hash
            else:
                # Start of the organization's chain
                link_ok = link_ok and link.prev_hash is None
            if not link_ok:
                chain_ok = False
                broken_at = link.id

        if not chain_ok:
            self._log_operation(
                "verify_event", organization_id=str(organization_id)
            ).warning(
                "ledger_chain_broken",
                event_id=str(entry_id),
                broken_at=str(broken_at),
            )

        return EventVerificationDTO(
            event_id=entry.id,
            ledger_seq=entry.ledger_seq,
            stored_hash=entry.hash,
            computed_hash=computed,
            hash_matches=hash_matches,
            prev_hash=entry.prev_hash,
            prev_exists=prev is not None,
            prev_hash_valid=prev_hash_valid,
            chain_ok=chain_ok,
            chain_depth_checked=checked,
            broken_at=broken_at,
            verified_at=self._clock(),
        )

    async def _completion_entry(self, tx: Any, job: ExportJob) -> LedgerEntry | None:
        return await tx.ledger.find_by_event_and_target(
            job.organization_id,
            completed_event_name(job.export_type.value),
            str(job.id),
        )

    def _entry_seals(self, entry: LedgerEntry, manifest_hash: str) -> bool:
        """The entry records this manifest hash and is itself unaltered."""
        return (
            entry.metadata.get("manifest_hash") == manifest_hash
            and entry.recompute_hash(self._salt) == entry.hash
        )
