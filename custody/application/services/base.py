"""Service logging mixin.

Provides `_log_operation()` for consistent, correlated structured
logging across application services.

Usage:
    class MyService(LoggingMixin):
        def __init__(self, dependency: SomePort) -> None:
            self._dependency = dependency
            self._init_logger(component="exports")

        async def do_something(self) -> None:
            log = self._log_operation("do_something", export_id="123")
            log.info("operation_started")
"""

import structlog

from custody.infrastructure.observability.correlation import get_correlation_id
from custody.infrastructure.observability.logging import get_logger_for_service


class LoggingMixin:
    """Mixin providing structured logging for services.

    The logger is bound with `service` (the class name) and `component`.
    Each operation additionally binds `operation` and `correlation_id`.
    """

    _log: structlog.BoundLogger

    def _init_logger(self, component: str = "custody") -> None:
        self._log = get_logger_for_service(self.__class__.__name__, component)

    def _log_operation(
        self,
        operation: str,
        **context: object,
    ) -> structlog.BoundLogger:
        """Create an operation-scoped logger with correlation id.

        Example:
            log = self._log_operation("claim", worker_id=worker_id)
            log.info("export_claimed", export_id=str(job.id))
        """
        return self._log.bind(
            operation=operation,
            correlation_id=get_correlation_id(),
            **context,
        )
