"""Unit tests for configuration module."""

from __future__ import annotations

from pathlib import Path

import pytest

from duck_session.infrastructure.config import (
    Config,
    EngineConfig,
    ExecutionConfig,
    ExportConfig,
    get_config,
)


@pytest.mark.unit
class TestConfig:
    """Tests for Config class."""

    def test_default_config(self) -> None:
        """Test default configuration values."""
        config = Config()

        assert config.engine.database == ":memory:"
        assert config.engine.read_only is False
        assert config.engine.options == {}
        assert config.execution.chunk_size == 2048
        assert config.execution.appender_flush_rows == 2048
        assert config.export.csv_path == Path("test_export.csv")
        assert config.export.delimiter == ","
        assert config.export.header is True
        assert config.export.keep_file is False
        assert config.observability.log_level == "WARNING"
        assert config.observability.metrics_port is None

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested settings from environment variables."""
        monkeypatch.setenv("DUCK_SESSION_ENGINE__DATABASE", "demo.duckdb")
        monkeypatch.setenv("DUCK_SESSION_EXECUTION__CHUNK_SIZE", "100")
        monkeypatch.setenv("DUCK_SESSION_EXPORT__KEEP_FILE", "true")

        config = Config()

        assert config.engine.database == "demo.duckdb"
        assert config.execution.chunk_size == 100
        assert config.export.keep_file is True

    def test_engine_options(self) -> None:
        engine = EngineConfig(options={"threads": "2", "max_memory": "1GB"})
        assert engine.options["threads"] == "2"

    def test_invalid_chunk_size(self) -> None:
        """Test that a non-positive chunk size raises validation error."""
        with pytest.raises(ValueError):
            ExecutionConfig(chunk_size=0)

    def test_invalid_delimiter(self) -> None:
        with pytest.raises(ValueError):
            ExportConfig(delimiter=";;")

    def test_ensure_directories(self, temp_dir: Path) -> None:
        """Test that ensure_directories creates the export and database directories."""
        config = Config(
            engine=EngineConfig(database=str(temp_dir / "db" / "demo.duckdb")),
            export=ExportConfig(csv_path=temp_dir / "out" / "export.csv"),
        )

        config.ensure_directories()

        assert (temp_dir / "db").exists()
        assert (temp_dir / "out").exists()


@pytest.mark.unit
class TestConfigSingleton:
    """Tests for get_config singleton."""

    def test_get_config_returns_same_instance(self) -> None:
        """Test that get_config returns the same instance."""
        get_config.cache_clear()
        try:
            assert get_config() is get_config()
        finally:
            get_config.cache_clear()
