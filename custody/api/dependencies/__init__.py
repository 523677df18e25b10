"""FastAPI dependencies for Custody Core routes."""

from custody.api.dependencies.identity import Caller, client_ip, get_caller
from custody.api.dependencies.services import (
    get_app_container,
    get_export_metrics_service,
    get_export_service,
    get_ledger_root_service,
    get_ledger_service,
    get_projection_service,
    get_rate_limit_service,
    get_verification_service,
)

__all__ = [
    "Caller",
    "client_ip",
    "get_app_container",
    "get_caller",
    "get_export_metrics_service",
    "get_export_service",
    "get_ledger_root_service",
    "get_ledger_service",
    "get_projection_service",
    "get_rate_limit_service",
    "get_verification_service",
]
