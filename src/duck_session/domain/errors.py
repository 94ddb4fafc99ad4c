"""Error taxonomy for engine sessions.

Every failure reported by the engine is surfaced as one of these
exceptions at the call that detected it. Nothing is retried.

Hierarchy:
    SessionError
    ├── OpenError
    │   └── ConfigError
    ├── ConnectError
    ├── ParseError
    ├── PrepareError
    ├── BindError
    ├── ExecutionError
    ├── AppenderError
    │   └── FlushError
    └── ResourceMisuseError
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class for all session errors.

    Attributes:
        message: Human readable description (engine message when available).
        status: Name of the engine exception class that caused the error,
            or None when the error was detected before reaching the engine.
    """

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status:
            return f"{self.message} [{self.status}]"
        return self.message


class OpenError(SessionError):
    """Raised when an engine instance cannot be opened."""

    pass


class ConfigError(OpenError):
    """Raised when the engine rejects an option name or value."""

    pass


class ConnectError(SessionError):
    """Raised when a session cannot be connected to an engine."""

    pass


class ParseError(SessionError):
    """Raised when SQL text has a syntax error or contains no statements."""

    pass


class PrepareError(SessionError):
    """Raised when the engine fails to prepare a statement."""

    pass


class BindError(SessionError):
    """Raised on a parameter position or type mismatch."""

    pass


class ExecutionError(SessionError):
    """Raised when the engine reports a failure while executing."""

    pass


class AppenderError(SessionError):
    """Raised on appender misuse (unknown table, incomplete or overfull row)."""

    pass


class FlushError(AppenderError):
    """Raised when buffered appender rows cannot be written."""

    pass


class ResourceMisuseError(SessionError):
    """Raised on use-after-release, double release or out-of-order release."""

    pass
