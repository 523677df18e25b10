"""Unit tests for LedgerRootService."""

from dataclasses import replace
from datetime import date, timedelta
from uuid import UUID

import pytest

from custody.application.services.ledger_root_service import LedgerRootService
from custody.application.services.merkle_tree_service import MerkleTreeService
from custody.bootstrap.container import CustodyContainer
from custody.domain.models.event_contracts import EventContractRegistry
from custody.domain.models.ledger_entry import LedgerEntry, LedgerEntrySpec
from custody.infrastructure.stubs import InMemoryUnitOfWork
from tests.helpers import FakeClock

DAY = date(2026, 1, 15)


async def _append(uow: InMemoryUnitOfWork, org_id: UUID, count: int = 1) -> list[LedgerEntry]:
    spec = EventContractRegistry.resolve(LedgerEntrySpec("job.created"))
    return [await uow.ledger.append(org_id, None, spec) for _ in range(count)]


@pytest.fixture
def roots(container: CustodyContainer) -> LedgerRootService:
    return container.roots


class TestComputeRoot:
    """Tests for a single organization and day."""

    async def test_root_covers_the_days_entries(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        entries = await _append(uow, org_id, 5)

        root = await roots.compute_root(org_id, DAY)

        assert root.event_count == 5
        assert root.merkle_root == MerkleTreeService().compute_root([e.hash for e in entries])
        assert root.hash_range.first_seq == entries[0].ledger_seq
        assert root.hash_range.last_entry_id == entries[-1].id

    async def test_recompute_is_a_noop(
        self,
        roots: LedgerRootService,
        uow: InMemoryUnitOfWork,
        clock: FakeClock,
        org_id: UUID,
    ) -> None:
        """A stored root is never replaced, even if entries arrive later."""
        await _append(uow, org_id, 2)
        first = await roots.compute_root(org_id, DAY)

        await _append(uow, org_id)
        clock.advance(seconds=60)
        second = await roots.compute_root(org_id, DAY)

        assert second == first
        assert second.event_count == 2

    async def test_empty_day_stores_nothing(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        assert await roots.compute_root(org_id, DAY) is None
        assert await uow.roots.get(org_id, DAY) is None

    async def test_only_entries_of_that_utc_day(
        self,
        roots: LedgerRootService,
        uow: InMemoryUnitOfWork,
        clock: FakeClock,
        org_id: UUID,
    ) -> None:
        await _append(uow, org_id)
        clock.advance(delta=timedelta(days=1))
        await _append(uow, org_id, 3)

        assert (await roots.compute_root(org_id, DAY)).event_count == 1
        assert (await roots.compute_root(org_id, DAY + timedelta(days=1))).event_count == 3

    async def test_only_entries_of_that_organization(
        self,
        roots: LedgerRootService,
        uow: InMemoryUnitOfWork,
        org_id: UUID,
        other_org_id: UUID,
    ) -> None:
        await _append(uow, org_id, 2)
        await _append(uow, other_org_id, 4)

        assert (await roots.compute_root(org_id, DAY)).event_count == 2


class TestComputeDailyRoots:
    """Tests for the all-organizations batch."""

    async def test_batch_classifies_organizations(
        self,
        roots: LedgerRootService,
        uow: InMemoryUnitOfWork,
        org_id: UUID,
        other_org_id: UUID,
    ) -> None:
        """Orgs with entries are computed; directory-only orgs are empty."""
        await _append(uow, other_org_id, 2)

        result = await roots.compute_daily_roots(DAY)

        assert result.computed == [other_org_id]
        assert result.empty == [org_id]
        assert result.failed == {}

        again = await roots.compute_daily_roots(DAY)
        assert again.skipped == [other_org_id]
        assert again.computed == []

    async def test_one_failure_does_not_stop_the_batch(
        self,
        roots: LedgerRootService,
        uow: InMemoryUnitOfWork,
        monkeypatch: pytest.MonkeyPatch,
        org_id: UUID,
        other_org_id: UUID,
    ) -> None:
        await _append(uow, org_id)
        await _append(uow, other_org_id)
        original = uow.ledger.list_for_day

        async def flaky(organization_id: UUID, day: date) -> list[LedgerEntry]:
            if organization_id == org_id:
                raise RuntimeError("replica lag")
            return await original(organization_id, day)

        monkeypatch.setattr(uow.ledger, "list_for_day", flaky)

        result = await roots.compute_daily_roots(DAY)

        assert result.computed == [other_org_id]
        assert result.failed == {org_id: "replica lag"}
        assert result.to_dict()["failed"] == {str(org_id): "replica lag"}


class TestVerifyRoot:
    async def test_untouched_root_verifies(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        await _append(uow, org_id, 3)
        await roots.compute_root(org_id, DAY)

        result = await roots.verify_root(org_id, DAY)

        assert result.valid
        assert result.stored_root == result.computed_root
        assert result.event_count == 3
        assert result.altered_entry_ids == ()

    async def test_tampered_root_fails(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        await _append(uow, org_id, 3)
        root = await roots.compute_root(org_id, DAY)
        uow.roots._roots[(org_id, DAY)] = replace(root, merkle_root="0" * 64)

        result = await roots.verify_root(org_id, DAY)

        assert not result.valid
        assert result.computed_root == root.merkle_root

    async def test_altered_entry_content_fails(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        """An edit that keeps the stored hash column is still detected."""
        entries = await _append(uow, org_id, 3)
        root = await roots.compute_root(org_id, DAY)
        victim = entries[1]
        forged = replace(victim, event_name="job.deleted", metadata={"forged": True})
        uow.ledger._entries[uow.ledger._entries.index(victim)] = forged
        uow.ledger._by_id[victim.id] = forged

        result = await roots.verify_root(org_id, DAY)

        assert not result.valid
        assert result.altered_entry_ids == (victim.id,)
        assert result.computed_root != root.merkle_root
        assert result.stored_root == root.merkle_root

    async def test_missing_root_is_not_valid(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        await _append(uow, org_id)

        result = await roots.verify_root(org_id, DAY)

        assert not result.valid
        assert result.stored_root is None
        assert result.computed_root is not None


class TestInclusionProof:
    async def test_pending_until_root_exists(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        [entry] = await _append(uow, org_id)
        assert await roots.inclusion_proof(entry) == (None, None)

    async def test_proof_verifies_against_root(
        self, roots: LedgerRootService, uow: InMemoryUnitOfWork, org_id: UUID
    ) -> None:
        entries = await _append(uow, org_id, 7)
        await roots.compute_root(org_id, DAY)

        root, proof = await roots.inclusion_proof(entries[4])

        assert proof.leaf_index == 4
        assert MerkleTreeService().verify_proof(
            entries[4].hash, list(proof.path), root.merkle_root
        )
