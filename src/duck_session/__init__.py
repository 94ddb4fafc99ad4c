"""
Duck Session - client sessions over an embedded analytical database

Opens DuckDB engine instances, runs statements through an explicit
extract/prepare/bind/execute pipeline, decodes chunked results into
tagged values, bulk-loads rows and exports tables to CSV.
"""

from duck_session.application import (
    Appender,
    EngineHandle,
    ExtractedStatements,
    PendingExecution,
    PreparedStatement,
    Result,
    Session,
    StatementRef,
)
from duck_session.domain import (
    AppenderError,
    BindError,
    ConfigError,
    ConnectError,
    ExecutionError,
    FlushError,
    OpenError,
    ParseError,
    PendingState,
    PrepareError,
    ResourceMisuseError,
    SessionError,
    Value,
    ValueKind,
)

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"

__all__ = [
    "Appender",
    "EngineHandle",
    "ExtractedStatements",
    "PendingExecution",
    "PreparedStatement",
    "Result",
    "Session",
    "StatementRef",
    "PendingState",
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
