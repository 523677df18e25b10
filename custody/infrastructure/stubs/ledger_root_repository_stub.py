"""In-memory ledger root repository stub."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from custody.application.ports.ledger_root_repository import LedgerRootRepositoryPort
from custody.domain.models.ledger_root import LedgerRoot


class LedgerRootRepositoryStub(LedgerRootRepositoryPort):
    def __init__(self) -> None:
        self._roots: dict[tuple[UUID, date], LedgerRoot] = {}

    def snapshot(self) -> dict[tuple[UUID, date], LedgerRoot]:
        return dict(self._roots)

    def restore(self, snapshot: dict[tuple[UUID, date], LedgerRoot]) -> None:
        self._roots = dict(snapshot)

    async def get(self, organization_id: UUID, day: date) -> LedgerRoot | None:
        return self._roots.get((organization_id, day))

    async def add(self, root: LedgerRoot) -> bool:
        key = (root.organization_id, root.date)
        if key in self._roots:
            return False
        self._roots[key] = root
        return True
