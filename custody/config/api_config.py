"""API and wiring configuration.

Environment Variables:
- CUSTODY_STORAGE: "memory" (stubs) or "postgres" (default: memory)
- DATABASE_URL: PostgreSQL URL, required when CUSTODY_STORAGE=postgres
- REDIS_URL: Redis URL for the shared rate limiter; when unset the
  in-memory limiter is used (single instance only)
- VERIFY_RATE_LIMIT_PER_MINUTE: Public verification requests per client
  per minute (default: 60)
- ENVIRONMENT: "production" or "development" (default: development)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from custody.config._env import _get_int_env, _get_str_env

STORAGE_BACKENDS = frozenset({"memory", "postgres"})


@dataclass(frozen=True)
class ApiConfig:
    storage: str = "memory"
    database_url: str | None = None
    redis_url: str | None = None
    verify_rate_limit_per_minute: int = 60
    environment: str = "development"

    def __post_init__(self) -> None:
        if self.storage not in STORAGE_BACKENDS:
            raise ValueError(
                f"storage must be one of {sorted(STORAGE_BACKENDS)}, got {self.storage!r}"
            )
        if self.storage == "postgres" and not self.database_url:
            raise ValueError("DATABASE_URL is required when CUSTODY_STORAGE=postgres")
        if self.verify_rate_limit_per_minute < 1:
            raise ValueError(
                "verify_rate_limit_per_minute must be positive, "
                f"got {self.verify_rate_limit_per_minute}"
            )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_environment(cls) -> "ApiConfig":
        return cls(
            storage=_get_str_env("CUSTODY_STORAGE", "memory").lower(),
            database_url=os.environ.get("DATABASE_URL") or None,
            redis_url=os.environ.get("REDIS_URL") or None,
            verify_rate_limit_per_minute=_get_int_env(
                "VERIFY_RATE_LIMIT_PER_MINUTE", 60
            ),
            environment=_get_str_env("ENVIRONMENT", "development"),
        )
