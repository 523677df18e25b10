"""Ledger configuration.

Environment Variables:
- LEDGER_HASH_SALT: Salt mixed into every verification hash. Changing it
  invalidates every stored hash (default: custody-ledger-v1)
- LEDGER_ROOT_HOUR_UTC: Hour of day the root worker runs (default: 2)
- IDEMPOTENCY_TTL_HOURS: Lifetime of idempotency records (default: 24)
- LEDGER_PROJECTION_TTL: Projection cache TTL in seconds (default: 60)
- LEDGER_EVENT_VERIFY_DEPTH: Previous links checked when verifying one
  event (default: 10)
"""

from __future__ import annotations

from dataclasses import dataclass

from custody.config._env import _get_int_env, _get_str_env
from custody.domain.hash_utils import DEFAULT_HASH_SALT


@dataclass(frozen=True)
class LedgerConfig:
    hash_salt: str = DEFAULT_HASH_SALT
    root_hour_utc: int = 2
    idempotency_ttl_hours: int = 24
    projection_ttl_seconds: int = 60
    event_verify_depth: int = 10

    def __post_init__(self) -> None:
        if not self.hash_salt:
            raise ValueError("hash_salt cannot be empty")
        if not 0 <= self.root_hour_utc <= 23:
            raise ValueError(f"root_hour_utc must be 0-23, got {self.root_hour_utc}")
        if self.idempotency_ttl_hours < 1:
            raise ValueError(
                f"idempotency_ttl_hours must be positive, got {self.idempotency_ttl_hours}"
            )
        if self.projection_ttl_seconds < 0:
            raise ValueError(
                "projection_ttl_seconds must be non-negative, "
                f"got {self.projection_ttl_seconds}"
            )
        if self.event_verify_depth < 0:
            raise ValueError(
                f"event_verify_depth must be non-negative, got {self.event_verify_depth}"
            )

    @classmethod
    def from_environment(cls) -> "LedgerConfig":
        return cls(
            hash_salt=_get_str_env("LEDGER_HASH_SALT", DEFAULT_HASH_SALT),
            root_hour_utc=_get_int_env("LEDGER_ROOT_HOUR_UTC", 2),
            idempotency_ttl_hours=_get_int_env("IDEMPOTENCY_TTL_HOURS", 24),
            projection_ttl_seconds=_get_int_env("LEDGER_PROJECTION_TTL", 60),
            event_verify_depth=_get_int_env("LEDGER_EVENT_VERIFY_DEPTH", 10),
        )


DEFAULT_LEDGER_CONFIG = LedgerConfig()
