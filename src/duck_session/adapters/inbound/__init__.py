"""Inbound adapters - the interactive command-line menu."""

from duck_session.adapters.inbound.cli import main, run_basic_example, run_menu

__all__ = [
    "main",
    "run_basic_example",
    "run_menu",
]
