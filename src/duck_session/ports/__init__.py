"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Outbound ports: Dependencies on external systems (the engine driver)

Adapters implement these ports with concrete functionality.
"""

from duck_session.ports.outbound import (
    EngineDriver,
    Materialized,
    NativeConnection,
    PreparedInfo,
    RawStatement,
)

__all__ = [
    "EngineDriver",
    "Materialized",
    "NativeConnection",
    "PreparedInfo",
    "RawStatement",
]
