"""FakeClock - Controllable clock for deterministic tests.

Every service, store and worker in Custody Core takes a `clock`
callable returning an aware UTC datetime. Passing a FakeClock instead of
the default makes time-dependent behavior (token expiry, retention
windows, stuck sweeps, idempotency TTLs, daily roots) deterministic.

Usage Patterns:
--------------

1. Frozen Time Pattern:

    >>> clock = FakeClock(datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc))
    >>> service = RetentionService(uow, directory, artifacts, clock=clock)
    >>> assert clock() == datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

2. Time Advancement Pattern:

    >>> clock.advance(seconds=3600)
    >>> clock.advance(delta=timedelta(days=31))

3. Pytest Fixture Pattern:
    Use the `clock` fixture from tests/conftest.py.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

DEFAULT_START = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to.

    Attributes:
        _current_time: The controlled current time.
    """

    def __init__(self, frozen_at: datetime | None = None) -> None:
        frozen_at = frozen_at or DEFAULT_START
        if frozen_at.tzinfo is None:
            frozen_at = frozen_at.replace(tzinfo=timezone.utc)
        self._current_time = frozen_at

    def __call__(self) -> datetime:
        return self._current_time

    def now(self) -> datetime:
        return self._current_time

    def advance(
        self,
        seconds: float | int | None = None,
        delta: timedelta | None = None,
    ) -> None:
        """Advance time by the specified amount.

        Raises:
            ValueError: If neither seconds nor delta is provided, or the
                amount is negative.
        """
        if delta is not None:
            advance_seconds = delta.total_seconds()
        elif seconds is not None:
            advance_seconds = float(seconds)
        else:
            raise ValueError("Must provide either 'seconds' or 'delta' argument")

        if advance_seconds < 0:
            raise ValueError(
                f"Cannot advance time backwards. Got {advance_seconds} seconds. "
                "Use set_time() for explicit time changes."
            )
        self._current_time += timedelta(seconds=advance_seconds)

    def set_time(self, new_time: datetime) -> None:
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        self._current_time = new_time
