"""Adapters layer - concrete implementations of ports.

- Inbound adapters: the interactive CLI
- Outbound adapters: the DuckDB engine driver
"""
