"""Daily ledger roots.

Once a day the previous UTC day's entries of every organization are
folded into a Merkle root. Leaves are the entries' verification hashes,
recomputed from their content and taken in ledger_seq order, so
reordering or altering any entry changes the root. A root is
written once per (organization, date); recomputing an existing day is a
no-op, and a day with no entries stores nothing.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from uuid import UUID

from custody.application.dtos.merkle import MerkleProofDTO
from custody.application.dtos.verification import (
    RootBatchResultDTO,
    RootVerificationDTO,
)
from custody.application.ports.external import OrganizationDirectoryPort
from custody.application.ports.unit_of_work import UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.merkle_tree_service import MerkleTreeService
from custody.domain.models.ledger_entry import LedgerEntry
from custody.domain.hash_utils import DEFAULT_HASH_SALT
from custody.domain.models.ledger_root import LedgerHashRange, LedgerRoot
from custody.infrastructure.monitoring.metrics import get_metrics_collector


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerRootService(LoggingMixin):
    def __init__(
        self,
        uow: UnitOfWorkPort,
        directory: OrganizationDirectoryPort,
        merkle: MerkleTreeService | None = None,
        salt: str = DEFAULT_HASH_SALT,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow = uow
        self._directory = directory
        self._salt = salt
        self._merkle = merkle or MerkleTreeService()
        self._clock = clock
        self._init_logger(component="ledger_roots")

    async def compute_root(self, organization_id: UUID, day: date) -> LedgerRoot | None:
        """Compute and store one organization's root for one day.

        Returns:
            The stored root (existing or new), or None if the day had no
            entries.
        """
        root, _ = await self._compute_root(organization_id, day)
        return root

    async def _compute_root(
        self, organization_id: UUID, day: date
    ) -> tuple[LedgerRoot | None, str]:
        log = self._log_operation(
            "compute_root", organization_id=str(organization_id), date=day.isoformat()
        )
        metrics = get_metrics_collector()

        async with self._uow.begin() as tx:
            existing = await tx.roots.get(organization_id, day)
            if existing is not None:
                log.debug("ledger_root_exists")
                metrics.increment_ledger_roots("skipped")
                return existing, "skipped"

            entries = await tx.ledger.list_for_day(organization_id, day)
            if not entries:
                log.debug("ledger_root_no_entries")
                return None, "empty"

            root = self._build_root(organization_id, day, entries)
            added = await tx.roots.add(root)
            if not added:
                # Another worker stored the same day first
                stored = await tx.roots.get(organization_id, day)
                metrics.increment_ledger_roots("skipped")
                return stored, "skipped"

        metrics.increment_ledger_roots("computed")
        log.info(
            "ledger_root_computed",
            merkle_root=root.merkle_root,
            event_count=root.event_count,
        )
        return root, "computed"

    async def compute_daily_roots(self, day: date) -> RootBatchResultDTO:
        """Compute the roots for every organization for one day.

        A failure for one organization is logged and recorded; the batch
        continues with the others.
        """
        log = self._log_operation("compute_daily_roots", date=day.isoformat())
        result = RootBatchResultDTO(date=day)

        async with self._uow.begin() as tx:
            ledger_orgs = await tx.ledger.list_organization_ids()
        directory_orgs = await self._directory.list_organization_ids()
        organization_ids = sorted(set(ledger_orgs) | set(directory_orgs), key=str)

        for organization_id in organization_ids:
            try:
                _, status = await self._compute_root(organization_id, day)
            except Exception as e:
                get_metrics_collector().increment_ledger_roots("failed")
                log.error(
                    "ledger_root_failed",
                    organization_id=str(organization_id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.failed[organization_id] = str(e)
                continue

            getattr(result, status).append(organization_id)

        log.info("ledger_roots_batch_completed", **result.to_dict())
        return result

    async def verify_root(self, organization_id: UUID, day: date) -> RootVerificationDTO:
        """Recompute a day's root from the ledger and compare it to the stored one.

        Every entry is rehashed from its content, so an edit that leaves the
        stored hash column untouched still fails verification.
        """
        async with self._uow.begin() as tx:
            stored = await tx.roots.get(organization_id, day)
            entries = await tx.ledger.list_for_day(organization_id, day)

        leaves = self._leaves(entries)
        computed = self._merkle.compute_root(leaves) if entries else None
        altered = tuple(e.id for e, leaf in zip(entries, leaves) if leaf != e.hash)
        stored_root = stored.merkle_root if stored else None
        valid = (
            stored is not None
            and not altered
            and computed == stored_root
            and stored.event_count == len(entries)
        )
        if stored is not None and not valid:
            self._log_operation(
                "verify_root", organization_id=str(organization_id), date=day.isoformat()
            ).warning(
                "ledger_root_mismatch",
                stored_root=stored_root,
                computed_root=computed,
                altered_entries=len(altered),
            )

        return RootVerificationDTO(
            organization_id=organization_id,
            date=day,
            stored_root=stored_root,
            computed_root=computed,
            event_count=len(entries),
            valid=valid,
            verified_at=self._clock(),
            altered_entry_ids=altered,
        )

    async def inclusion_proof(
        self, entry: LedgerEntry
    ) -> tuple[LedgerRoot | None, MerkleProofDTO | None]:
        """The root covering an entry's day and the entry's proof against it.

        Returns (None, None) when the day's root has not been computed.
        The proof is None if the entry is not among the day's entries. The
        leaf is the entry's recomputed hash, so an altered entry's proof does
        not lead to the stored root.
        """
        day = entry.created_at.astimezone(timezone.utc).date()
        async with self._uow.begin() as tx:
            root = await tx.roots.get(entry.organization_id, day)
            if root is None:
                return None, None
            entries = await tx.ledger.list_for_day(entry.organization_id, day)

        leaves = self._leaves(entries)
        try:
            index = [e.id for e in entries].index(entry.id)
        except ValueError:
            return root, None
        path = self._merkle.generate_proof(leaves, index)
        return root, MerkleProofDTO(
            leaf_index=index,
            leaf_hash=leaves[index],
            root=root.merkle_root,
            path=tuple(path),
        )

    def _build_root(
        self, organization_id: UUID, day: date, entries: list[LedgerEntry]
    ) -> LedgerRoot:
        ordered = sorted(entries, key=lambda e: e.ledger_seq)
        merkle_root = self._merkle.compute_root(self._leaves(ordered))
        return LedgerRoot(
            organization_id=organization_id,
            date=day,
            merkle_root=merkle_root,
            event_count=len(ordered),
            hash_range=LedgerHashRange(
                first_entry_id=ordered[0].id,
                last_entry_id=ordered[-1].id,
                first_seq=ordered[0].ledger_seq,
                last_seq=ordered[-1].ledger_seq,
            ),
            computed_at=self._clock(),
        )

    def _leaves(self, entries: list[LedgerEntry]) -> list[str]:
        return [e.recompute_hash(self._salt) for e in entries]
