"""Plan tiers and their export retention windows."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum

# Failed exports are kept briefly for debugging regardless of tier
FAILED_EXPORT_RETENTION = timedelta(days=7)


class PlanTier(Enum):
    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"

    @property
    def retention(self) -> timedelta:
        return timedelta(days=_RETENTION_DAYS[self])

    @classmethod
    def parse(cls, value: str | None) -> PlanTier:
        """Parse a tier name, falling back to STARTER for unknown values."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.STARTER


_RETENTION_DAYS: dict[PlanTier, int] = {
    PlanTier.STARTER: 30,
    PlanTier.PRO: 90,
    PlanTier.BUSINESS: 365,
    PlanTier.ENTERPRISE: 730,
}
