"""Prometheus metrics collection for Simple Docker Manager."""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for dashboard operations."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """
        Initialize metrics collector with all metrics.

        Args:
            registry: Registry the metrics are registered in
        """
        self.registry = registry

        # Counter metrics
        self.login_attempts_total = Counter(
            "sdm_login_attempts_total",
            "Total number of login attempts",
            ["outcome"],
            registry=registry,
        )

        self.container_actions_total = Counter(
            "sdm_container_actions_total",
            "Total number of container actions",
            ["action", "status"],
            registry=registry,
        )

        # Histogram metrics
        self.engine_request_duration_seconds = Histogram(
            "sdm_engine_request_duration_seconds",
            "Docker engine call duration in seconds",
            ["operation"],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )

        # Gauge metrics
        self.active_sessions = Gauge(
            "sdm_active_sessions",
            "Number of stored login sessions",
            registry=registry,
        )

    def record_login(self, success: bool) -> None:
        """
        Record a login attempt.

        Args:
            success: Whether the credentials were accepted
        """
        self.login_attempts_total.labels(outcome="success" if success else "failure").inc()

    def record_container_action(self, action: str, status: str) -> None:
        """
        Record a container action.

        Args:
            action: Action name (create, start, stop, restart)
            status: Result (success or failure)
        """
        self.container_actions_total.labels(action=action, status=status).inc()

    def record_engine_request(self, operation: str, duration_seconds: float) -> None:
        """
        Record how long a Docker engine call took.

        Args:
            operation: Engine operation name
            duration_seconds: Duration in seconds
        """
        self.engine_request_duration_seconds.labels(operation=operation).observe(duration_seconds)

    def set_active_sessions(self, count: int) -> None:
        """
        Set the number of stored sessions.

        Args:
            count: Number of sessions
        """
        self.active_sessions.set(count)

    def get_metrics(self) -> bytes:
        """
        Get current metrics in Prometheus format.

        Returns:
            Metrics data in bytes
        """
        return generate_latest(self.registry)


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """
    Get the global metrics collector instance.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
