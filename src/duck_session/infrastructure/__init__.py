"""Infrastructure layer - cross-cutting concerns."""

from duck_session.infrastructure.config import Config, get_config
from duck_session.infrastructure.logging import setup_logging, get_logger
from duck_session.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from duck_session.infrastructure.tracing import setup_tracing, get_tracer, trace_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
