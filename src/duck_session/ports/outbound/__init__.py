"""Outbound ports - interfaces for external dependencies.

The only external dependency is the embedded analytical engine.
"""

from duck_session.ports.outbound.engine_driver import (
    INTERRUPTED,
    EngineDriver,
    Materialized,
    NativeConnection,
    PreparedInfo,
    RawStatement,
)

__all__ = [
    "INTERRUPTED",
    "EngineDriver",
    "Materialized",
    "NativeConnection",
    "PreparedInfo",
    "RawStatement",
]
