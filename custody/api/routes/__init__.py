"""API routers."""

from custody.api.routes.exports import router as exports_router
from custody.api.routes.health import router as health_router
from custody.api.routes.ledger import router as ledger_router
from custody.api.routes.metrics import router as metrics_router
from custody.api.routes.verification import router as verification_router

__all__ = [
    "exports_router",
    "health_router",
    "ledger_router",
    "metrics_router",
    "verification_router",
]
