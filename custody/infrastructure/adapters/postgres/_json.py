"""JSONB helpers for raw-SQL adapters.

asyncpg hands JSONB back as text when no codec is registered, and takes
it as text with an explicit CAST in the statement.
"""

from __future__ import annotations

import json
from typing import Any


def dump_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, allow_nan=False)


def load_json(value: Any) -> Any:
    if value is None or not isinstance(value, (str, bytes)):
        return value
    return json.loads(value)
