"""Ensure atomic operations with compensating rollback.

This module provides an async context manager used by the in-memory
unit of work. Every write registers a compensating handler; if an
exception escapes the block, the handlers run in reverse order so that
a failed command leaves no partial state behind.

Usage:
    async with AtomicOperationContext() as ctx:
        ctx.add_rollback(undo_insert)
        await do_operation()
        # On exception: undo_insert called, exception re-raised
"""

import asyncio
import inspect
from collections.abc import Callable, Coroutine
from types import TracebackType
from typing import Any

import structlog

log = structlog.get_logger()

# Rollback handlers can be sync or async
RollbackHandler = Callable[[], None] | Callable[[], Coroutine[Any, Any, None]]


class AtomicOperationContext:
    """Context manager ensuring all-or-nothing operations.

    Rollback handlers are called LIFO when an exception occurs, then the
    original exception is re-raised. A handler that itself fails is
    logged and the remaining handlers still run.

    `rollback()` may also be called explicitly, which is how the unit of
    work aborts without raising.
    """

    def __init__(self) -> None:
        self._rollback_handlers: list[RollbackHandler] = []

    @property
    def pending_rollbacks(self) -> int:
        return len(self._rollback_handlers)

    def add_rollback(self, handler: RollbackHandler) -> None:
        """Register a rollback handler. Must take no arguments."""
        self._rollback_handlers.append(handler)

    def discard(self) -> None:
        """Forget all handlers (the operation committed)."""
        self._rollback_handlers.clear()

    async def rollback(self) -> None:
        """Run every registered handler in reverse order, then clear them."""
        handlers = list(reversed(self._rollback_handlers))
        self._rollback_handlers.clear()
        for handler in handlers:
            try:
                if asyncio.iscoroutinefunction(handler) or (
                    inspect.ismethod(handler)
                    and asyncio.iscoroutinefunction(handler.__func__)
                ):
                    await handler()
                else:
                    result = handler()
                    if asyncio.iscoroutine(result):
                        await result
            except Exception as rollback_error:
                log.error(
                    "rollback_handler_failed",
                    rollback_error=str(rollback_error),
                    rollback_error_type=type(rollback_error).__name__,
                )

    async def __aenter__(self) -> "AtomicOperationContext":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if exc_val is not None:
            log.info(
                "atomic_operation_failed",
                error=str(exc_val),
                error_type=exc_type.__name__ if exc_type else "Unknown",
                rollback_count=len(self._rollback_handlers),
            )
            await self.rollback()
        return False
