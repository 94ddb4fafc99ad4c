"""Configuration management for duck_session."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseModel):
    """Engine instance configuration."""

    database: str = Field(default=":memory:", description="Database path or :memory:")
    read_only: bool = Field(default=False, description="Open the database read-only")
    options: dict[str, str] = Field(
        default_factory=dict,
        description="Engine options passed verbatim at open (e.g. threads, max_memory)",
    )


class ExecutionConfig(BaseModel):
    """Statement execution configuration."""

    chunk_size: int = Field(
        default=2048, ge=1, description="Rows per result chunk (engine vector size)"
    )
    poll_interval_seconds: float = Field(
        default=0.001, gt=0, le=1.0, description="Sleep between pending-execution polls"
    )
    appender_flush_rows: int = Field(
        default=2048, ge=1, description="Buffered rows that trigger an appender flush"
    )


class ExportConfig(BaseModel):
    """CSV export configuration used by the demo."""

    csv_path: Path = Field(default=Path("test_export.csv"), description="CSV output path")
    delimiter: str = Field(default=",", min_length=1, max_length=1, description="Field delimiter")
    header: bool = Field(default=True, description="Write a header line")
    keep_file: bool = Field(default=False, description="Keep the exported file after the demo")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")
    metrics_port: int | None = Field(
        default=None, ge=1, le=65535, description="Prometheus metrics port (disabled if unset)"
    )
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="duck_session", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for duck_session."""

    model_config = SettingsConfigDict(
        env_prefix="DUCK_SESSION_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    engine: EngineConfig = Field(default_factory=EngineConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the export directory and a file database's directory exist."""
        self.export.csv_path.parent.mkdir(parents=True, exist_ok=True)
        if self.engine.database != ":memory:":
            Path(self.engine.database).parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    config = Config()
    config.ensure_directories()
    return config
