"""Pytest configuration and fixtures for duck_session tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from duck_session.application import EngineHandle, Session
from duck_session.infrastructure.config import (
    Config,
    EngineConfig,
    ExecutionConfig,
    ExportConfig,
)
from duck_session.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration writing into a temporary directory."""
    return Config(
        engine=EngineConfig(database=":memory:", options={"threads": "2"}),
        execution=ExecutionConfig(chunk_size=2048, poll_interval_seconds=0.001),
        export=ExportConfig(csv_path=temp_dir / "export.csv"),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def engine(test_config: Config, metrics_registry: MetricsRegistry) -> Generator[EngineHandle, None, None]:
    """Provide an open in-memory engine."""
    with EngineHandle.from_config(test_config, metrics=metrics_registry) as handle:
        yield handle


@pytest.fixture
def session(engine: EngineHandle) -> Generator[Session, None, None]:
    """Provide a session on the test engine."""
    with engine.connect() as s:
        yield s


@pytest.fixture
def seeded(session: Session) -> Session:
    """Provide a session whose engine holds the three-row ``test`` table."""
    session.run_script(
        "CREATE TABLE test (id INTEGER, name VARCHAR);"
        "INSERT INTO test VALUES (1, 'Alice'), (2, 'Bob'), (3, 'Charlie');"
    )
    return session


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
