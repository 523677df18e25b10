"""Service dependencies, resolved from the application's container."""

from fastapi import Request

from custody.application.services import (
    ExportMetricsService,
    ExportService,
    HashVerificationService,
    LedgerRootService,
    LedgerService,
    ProjectionService,
    RateLimitService,
)
from custody.bootstrap.container import CustodyContainer, get_container


def get_app_container(request: Request) -> CustodyContainer:
    container = getattr(request.app.state, "container", None)
    return container if container is not None else get_container()


def get_export_service(request: Request) -> ExportService:
    return get_app_container(request).exports


def get_export_metrics_service(request: Request) -> ExportMetricsService:
    return get_app_container(request).export_metrics


def get_verification_service(request: Request) -> HashVerificationService:
    return get_app_container(request).verification


def get_ledger_service(request: Request) -> LedgerService:
    return get_app_container(request).ledger


def get_ledger_root_service(request: Request) -> LedgerRootService:
    return get_app_container(request).roots


def get_projection_service(request: Request) -> ProjectionService:
    return get_app_container(request).projections


def get_rate_limit_service(request: Request) -> RateLimitService:
    return get_app_container(request).rate_limits
