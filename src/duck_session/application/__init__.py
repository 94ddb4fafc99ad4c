"""Application layer - engine handles, sessions and the statement pipeline."""

from duck_session.application.appender import Appender
from duck_session.application.engine import EngineHandle
from duck_session.application.export import build_copy_statement
from duck_session.application.pending import PendingExecution
from duck_session.application.result import Result
from duck_session.application.session import Session
from duck_session.application.statement import (
    ExtractedStatements,
    PreparedStatement,
    StatementRef,
)

__all__ = [
    "Appender",
    "EngineHandle",
    "ExtractedStatements",
    "PendingExecution",
    "PreparedStatement",
    "Result",
    "Session",
    "StatementRef",
    "build_copy_statement",
]
