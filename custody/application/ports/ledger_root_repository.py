"""Ledger root repository port.

At most one root per (organization_id, date). `add` is insert-if-absent.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol
from uuid import UUID

from custody.domain.models.ledger_root import LedgerRoot


class LedgerRootRepositoryPort(Protocol):
    async def get(self, organization_id: UUID, day: date) -> LedgerRoot | None:
        ...

    async def add(self, root: LedgerRoot) -> bool:
        """Insert the root. Returns False if one already existed."""
        ...
