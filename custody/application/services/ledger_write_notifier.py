"""In-process fan-out of committed ledger entries.

Every writer to the ledger (the command runner, the export coordinator
and the retention sweep) hands its entries to the same notifier after
the transaction commits. Listeners such as projection invalidation see
every write made in this process, user commands and system events alike.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from custody.application.services.base import LoggingMixin
from custody.domain.models.ledger_entry import LedgerEntry

LedgerWriteListener = Callable[[LedgerEntry], Awaitable[None]]


class LedgerWriteNotifier(LoggingMixin):
    def __init__(self) -> None:
        self._listeners: list[LedgerWriteListener] = []
        self._init_logger(component="ledger")

    def add_listener(self, listener: LedgerWriteListener) -> None:
        self._listeners.append(listener)

    async def notify(self, entries: Iterable[LedgerEntry]) -> None:
        """Pass committed entries to every listener.

        Call only after the writing transaction has committed. A failing
        listener is logged and skipped.
        """
        for entry in entries:
            for listener in self._listeners:
                try:
                    await listener(entry)
                except Exception as e:
                    # The write already committed; a listener cannot undo it
                    self._log.error(
                        "ledger_listener_failed",
                        ledger_entry_id=str(entry.id),
                        error=str(e),
                        error_type=type(e).__name__,
                    )
