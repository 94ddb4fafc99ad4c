"""Domain layer - values, chunks and the error taxonomy."""

from duck_session.domain.entities import ColumnInfo, DataChunk
from duck_session.domain.errors import (
    AppenderError,
    BindError,
    ConfigError,
    ConnectError,
    ExecutionError,
    FlushError,
    OpenError,
    ParseError,
    PrepareError,
    ResourceMisuseError,
    SessionError,
)
from duck_session.domain.value_objects import (
    PendingState,
    PreparedName,
    SessionId,
    StatementState,
    Value,
    ValueKind,
)

__all__ = [
    "ColumnInfo",
    "DataChunk",
    "PendingState",
    "PreparedName",
    "SessionId",
    "StatementState",
    "Value",
    "ValueKind",
    "SessionError",
    "OpenError",
    "ConfigError",
    "ConnectError",
    "ParseError",
    "PrepareError",
    "BindError",
    "ExecutionError",
    "AppenderError",
    "FlushError",
    "ResourceMisuseError",
]
