"""Test helpers for Custody Core tests.

Helpers:
    FakeClock: Controllable clock for deterministic tests
    make_context: CommandContext with sensible defaults
    process_next_export: Drive one export through a worker cycle

Usage:
    from tests.helpers import FakeClock, make_context
"""

from tests.helpers.commands import make_context
from tests.helpers.exports import process_next_export
from tests.helpers.fake_clock import FakeClock

__all__ = ["FakeClock", "make_context", "process_next_export"]
