"""Domain primitives for append-only records and atomic operations."""

from custody.domain.primitives.ensure_atomicity import (
    AtomicOperationContext,
    RollbackHandler,
)
from custody.domain.primitives.prevent_delete import DeletePreventionMixin

__all__ = [
    "AtomicOperationContext",
    "DeletePreventionMixin",
    "RollbackHandler",
]
