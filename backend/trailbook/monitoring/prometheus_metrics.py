"""
Prometheus metrics module for Trailbook.

Service operation timings come from ``@BaseService.measure_operation``; the
chat pipeline and realtime gateway report their own counters here.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "trailbook_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "trailbook_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "trailbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "trailbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "trailbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Chat pipeline
chat_tasks_total = Counter(
    "trailbook_chat_tasks_total",
    "Chat background task outcomes",
    ["queue", "outcome"],  # processed | retried | dead_lettered | invalid
    registry=REGISTRY,
)

chat_dispatch_failures_total = Counter(
    "trailbook_chat_dispatch_failures_total",
    "Task publishes that the broker rejected",
    ["queue"],
    registry=REGISTRY,
)

# Realtime gateway
realtime_sessions = Gauge(
    "trailbook_realtime_sessions",
    "Live realtime sessions in this process",
    registry=REGISTRY,
)

realtime_events_total = Counter(
    "trailbook_realtime_events_total",
    "Realtime events received from clients",
    ["event"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _lock: Lock = Lock()

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'MessageService')
            operation: Operation/method name (e.g., 'send_message')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_chat_task(queue: str, outcome: str) -> None:
        chat_tasks_total.labels(queue=queue, outcome=outcome).inc()

    @staticmethod
    def record_dispatch_failure(queue: str) -> None:
        chat_dispatch_failures_total.labels(queue=queue).inc()

    @staticmethod
    def set_realtime_sessions(count: int) -> None:
        realtime_sessions.set(count)

    @staticmethod
    def record_realtime_event(event: str) -> None:
        realtime_events_total.labels(event=event).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
