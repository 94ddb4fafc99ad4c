"""Prometheus metrics for engine sessions."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all session and statement metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Engine and session metrics
        self.engines_open = Gauge(
            "duck_session_engines_open",
            "Number of open engine handles",
            registry=self._registry,
        )

        self.sessions_active = Gauge(
            "duck_session_sessions_active",
            "Number of open sessions",
            registry=self._registry,
        )

        self.sessions_total = Counter(
            "duck_session_sessions_total",
            "Total number of sessions opened",
            registry=self._registry,
        )

        # Statement metrics
        self.statements_total = Counter(
            "duck_session_statements_total",
            "Total number of statements executed",
            ["statement_type", "status"],  # status: success, error, cancelled
            registry=self._registry,
        )

        self.statement_latency_seconds = Histogram(
            "duck_session_statement_latency_seconds",
            "Statement execution latency in seconds",
            ["statement_type"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

        self.rows_fetched_total = Counter(
            "duck_session_rows_fetched_total",
            "Total result rows materialized into chunks",
            registry=self._registry,
        )

        self.cancellations_total = Counter(
            "duck_session_cancellations_total",
            "Total pending executions cancelled",
            registry=self._registry,
        )

        # Appender metrics
        self.appender_rows_total = Counter(
            "duck_session_appender_rows_total",
            "Total rows flushed by appenders",
            registry=self._registry,
        )

        self.appender_flushes_total = Counter(
            "duck_session_appender_flushes_total",
            "Total appender flush operations",
            ["status"],
            registry=self._registry,
        )

        # Build info
        self.info = Info(
            "duck_session",
            "Session library information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from duck_session import __version__
    _metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
