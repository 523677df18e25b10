"""Unit tests for correlation ids, service logging and the metrics singleton."""

import asyncio

from structlog.testing import capture_logs

from custody.application.services.base import LoggingMixin
from custody.infrastructure.monitoring import (
    METRICS_CONTENT_TYPE,
    generate_metrics,
    get_metrics_collector,
    reset_metrics_collector,
)
from custody.infrastructure.observability import (
    correlation_id_processor,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


class _Service(LoggingMixin):
    def __init__(self) -> None:
        self._init_logger(component="tests")

    def work(self) -> None:
        self._log_operation("work", export_id="e1").info("work_done")


class TestCorrelationId:
    async def test_isolated_per_task(self) -> None:
        """Each task sees the id it set, not its siblings'."""

        async def handle(request_id: str) -> str:
            set_correlation_id(request_id)
            await asyncio.sleep(0)
            return get_correlation_id()

        results = await asyncio.gather(handle("a"), handle("b"))

        assert results == ["a", "b"]

    def test_processor_adds_id_when_set(self) -> None:
        set_correlation_id("req-1")
        assert correlation_id_processor(None, "info", {})["correlation_id"] == "req-1"

        set_correlation_id("")
        assert "correlation_id" not in correlation_id_processor(None, "info", {})

    def test_generated_ids_are_unique(self) -> None:
        assert generate_correlation_id() != generate_correlation_id()


class TestLoggingMixin:
    def test_operation_context_is_bound(self) -> None:
        set_correlation_id("req-42")
        with capture_logs() as logs:
            _Service().work()

        [entry] = logs
        assert entry["event"] == "work_done"
        assert entry["service"] == "_Service"
        assert entry["component"] == "tests"
        assert entry["operation"] == "work"
        assert entry["correlation_id"] == "req-42"
        assert entry["export_id"] == "e1"


class TestMetricsCollector:
    def test_singleton_until_reset(self) -> None:
        first = get_metrics_collector()
        assert get_metrics_collector() is first

        reset_metrics_collector()

        assert get_metrics_collector() is not first

    def test_exposition_includes_custody_metrics(self) -> None:
        get_metrics_collector().increment_ledger_appends("governance")

        output = generate_metrics().decode("utf-8")

        assert "custody_ledger_appends_total" in output
        assert 'category="governance"' in output
        assert METRICS_CONTENT_TYPE.startswith("text/plain")
