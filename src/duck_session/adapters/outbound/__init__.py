"""Outbound adapters - concrete engine drivers."""

from duck_session.adapters.outbound.duckdb_driver import DuckDBDriver

__all__ = [
    "DuckDBDriver",
]
