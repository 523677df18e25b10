"""Prometheus metrics for Custody Core.

Operational metrics only: HTTP traffic, export queue health, ledger
append and root activity, and rate limiting. Ledger content itself is
never exported as metrics.

Labels: service, environment on every series.
"""

import os
import threading

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_collector_lock = threading.Lock()

# Request duration buckets (10ms to 10s)
DEFAULT_HISTOGRAM_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

# Export generation can take minutes
EXPORT_DURATION_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0)


class MetricsCollector:
    """Collects and manages Prometheus metrics.

    Attributes:
        http_request_duration_seconds: Request latency histogram.
        http_requests_total: All HTTP requests.
        http_requests_failed_total: 4xx/5xx requests.
        export_queue_depth: Jobs per export state.
        export_time_in_state_seconds: Average age of jobs in their current state.
        export_failure_rate: Failed attempts / attempts, per export type.
        export_claims_total: Successful claims.
        export_attempt_failures_total: Failed attempts by outcome (retry, poison_pill).
        export_generation_seconds: Time from claim to ready.
        ledger_appends_total: Entries appended, by category.
        ledger_roots_computed_total: Daily roots by result.
        rate_limit_checks_total: Rate limit checks by scope and result.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics.

        Args:
            registry: Optional custom registry for testing isolation.
        """
        self._registry = registry or CollectorRegistry()
        self._environment = os.environ.get("ENVIRONMENT", "development")
        self._service_name = os.environ.get("SERVICE_NAME", "custody-core")

        self.http_request_duration_seconds = Histogram(
            name="http_request_duration_seconds",
            documentation="HTTP request duration in seconds",
            labelnames=["service", "environment", "method", "endpoint"],
            buckets=DEFAULT_HISTOGRAM_BUCKETS,
            registry=self._registry,
        )
        self.http_requests_total = Counter(
            name="http_requests_total",
            documentation="Total HTTP requests",
            labelnames=["service", "environment", "method", "endpoint", "status"],
            registry=self._registry,
        )
        self.http_requests_failed_total = Counter(
            name="http_requests_failed_total",
            documentation="Total failed HTTP requests (4xx, 5xx)",
            labelnames=[
                "service",
                "environment",
                "method",
                "endpoint",
                "status",
                "error_type",
            ],
            registry=self._registry,
        )

        self.export_queue_depth = Gauge(
            name="custody_export_queue_depth",
            documentation="Number of export jobs per state",
            labelnames=["service", "environment", "state"],
            registry=self._registry,
        )
        self.export_time_in_state_seconds = Gauge(
            name="custody_export_time_in_state_seconds",
            documentation="Average seconds export jobs have spent in their current state",
            labelnames=["service", "environment", "state"],
            registry=self._registry,
        )
        self.export_failure_rate = Gauge(
            name="custody_export_failure_rate",
            documentation="Failed generation attempts divided by attempts",
            labelnames=["service", "environment", "export_type"],
            registry=self._registry,
        )
        self.export_claims_total = Counter(
            name="custody_export_claims_total",
            documentation="Export jobs claimed by workers",
            labelnames=["service", "environment", "export_type"],
            registry=self._registry,
        )
        self.export_attempt_failures_total = Counter(
            name="custody_export_attempt_failures_total",
            documentation="Failed export generation attempts",
            labelnames=["service", "environment", "export_type", "outcome"],
            registry=self._registry,
        )
        self.export_generation_seconds = Histogram(
            name="custody_export_generation_seconds",
            documentation="Seconds from claim to ready",
            labelnames=["service", "environment", "export_type"],
            buckets=EXPORT_DURATION_BUCKETS,
            registry=self._registry,
        )
        self.ledger_appends_total = Counter(
            name="custody_ledger_appends_total",
            documentation="Ledger entries appended",
            labelnames=["service", "environment", "category"],
            registry=self._registry,
        )
        self.ledger_roots_computed_total = Counter(
            name="custody_ledger_roots_computed_total",
            documentation="Daily ledger root computations",
            labelnames=["service", "environment", "result"],
            registry=self._registry,
        )
        self.rate_limit_checks_total = Counter(
            name="custody_rate_limit_checks_total",
            documentation="Rate limit checks performed",
            labelnames=["service", "environment", "scope", "result"],
            registry=self._registry,
        )

    def _labels(self) -> dict[str, str]:
        return {"service": self._service_name, "environment": self._environment}

    def observe_request_duration(
        self, method: str, endpoint: str, duration: float
    ) -> None:
        self.http_request_duration_seconds.labels(
            method=method, endpoint=endpoint, **self._labels()
        ).observe(duration)

    def increment_requests(self, method: str, endpoint: str, status: str) -> None:
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status=status, **self._labels()
        ).inc()

    def increment_failed_requests(
        self, method: str, endpoint: str, status: str, error_type: str = "http_error"
    ) -> None:
        self.http_requests_failed_total.labels(
            method=method,
            endpoint=endpoint,
            status=status,
            error_type=error_type,
            **self._labels(),
        ).inc()

    def set_export_queue_depth(self, state: str, depth: int) -> None:
        self.export_queue_depth.labels(state=state, **self._labels()).set(depth)

    def set_export_time_in_state(self, state: str, seconds: float) -> None:
        self.export_time_in_state_seconds.labels(state=state, **self._labels()).set(
            seconds
        )

    def set_export_failure_rate(self, export_type: str, rate: float) -> None:
        self.export_failure_rate.labels(
            export_type=export_type, **self._labels()
        ).set(rate)

    def increment_export_claims(self, export_type: str) -> None:
        self.export_claims_total.labels(
            export_type=export_type, **self._labels()
        ).inc()

    def increment_export_attempt_failures(self, export_type: str, outcome: str) -> None:
        """Record a failed attempt.

        Args:
            export_type: Export type value.
            outcome: "retry" when re-queued, "poison_pill" when parked in failed.
        """
        self.export_attempt_failures_total.labels(
            export_type=export_type, outcome=outcome, **self._labels()
        ).inc()

    def observe_export_generation(self, export_type: str, seconds: float) -> None:
        self.export_generation_seconds.labels(
            export_type=export_type, **self._labels()
        ).observe(seconds)

    def increment_ledger_appends(self, category: str) -> None:
        self.ledger_appends_total.labels(category=category, **self._labels()).inc()

    def increment_ledger_roots(self, result: str) -> None:
        """Record a root computation: "computed", "skipped" or "failed"."""
        self.ledger_roots_computed_total.labels(result=result, **self._labels()).inc()

    def record_rate_limit_check(self, scope: str, allowed: bool) -> None:
        self.rate_limit_checks_total.labels(
            scope=scope,
            result="allowed" if allowed else "blocked",
            **self._labels(),
        ).inc()

    def get_registry(self) -> CollectorRegistry:
        return self._registry


_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get the singleton MetricsCollector (thread-safe, double-checked)."""
    global _metrics_collector
    if _metrics_collector is None:
        with _collector_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def generate_metrics() -> bytes:
    """Prometheus exposition output for the singleton collector."""
    return generate_latest(get_metrics_collector().get_registry())


def reset_metrics_collector() -> None:
    """Reset the singleton collector (for testing only)."""
    global _metrics_collector
    with _collector_lock:
        _metrics_collector = None
