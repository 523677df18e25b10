"""API middleware components."""

from custody.api.middleware.logging_middleware import LoggingMiddleware
from custody.api.middleware.metrics_middleware import MetricsMiddleware

__all__: list[str] = [
    "LoggingMiddleware",
    "MetricsMiddleware",
]
