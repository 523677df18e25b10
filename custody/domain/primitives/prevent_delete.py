"""Prevent deletion of ledger entities.

This module provides a mixin that makes deletion an explicit, visible
failure. Ledger entries are append-only: corrections are new entries
that reference the original id, never edits or deletes.

Usage:
    @dataclass(frozen=True)
    class LedgerEntry(DeletePreventionMixin):
        ...

    entry.delete()  # Raises LedgerImmutabilityError
"""

from custody.domain.errors.ledger import LedgerImmutabilityError


class DeletePreventionMixin:
    """Mixin that prevents deletion of append-only records.

    Provides a `delete()` method that always raises, so that a stray
    attempt to remove a ledger record fails loudly instead of silently.
    """

    def delete(self) -> None:
        """Raise LedgerImmutabilityError - deletion is prohibited.

        Raises:
            LedgerImmutabilityError: Always.
        """
        raise LedgerImmutabilityError(
            "Deletion prohibited - ledger entries are append-only; "
            "record a correction entry instead"
        )
