"""Environment variable helpers shared by the config modules."""

from __future__ import annotations

import os


def _get_int_env(key: str, default: int) -> int:
    """Integer environment variable, or default if unset or invalid."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Float environment variable, or default if unset or invalid."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str_env(key: str, default: str) -> str:
    value = os.environ.get(key)
    return value if value else default
