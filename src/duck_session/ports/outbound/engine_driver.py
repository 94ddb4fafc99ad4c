"""Engine Driver port for the embedded database boundary.

This outbound port defines the contract for the native analytical
engine. The engine owns parsing, planning, execution, storage and
transactions; the driver only opens handles, runs statements and
translates engine failures into the session error taxonomy.

The driver is responsible for:
- Opening engine instances and per-session connections
- Splitting SQL text into individually preparable statements
- Preparing statements and reporting inferred parameter types
- Executing statements and materializing results into chunks
- Interrupting in-flight executions
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from duck_session.domain.entities import ColumnInfo, DataChunk

NativeConnection = Any
"""Opaque engine connection object owned by the driver."""

INTERRUPTED = "InterruptException"
"""Status carried by an ExecutionError raised for an interrupted execution."""


@dataclass(frozen=True, slots=True)
class RawStatement:
    """One statement split out of a SQL text by the engine."""

    query: str
    statement_type: str
    parameter_names: tuple[str, ...] = ()

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_names)


@dataclass(frozen=True, slots=True)
class PreparedInfo:
    """What the engine reports about a prepared statement.

    Attributes:
        prepared: False when the engine cannot hold this statement type
            as a named prepared statement; it is then validated at execution.
        parameter_types: Type name per 1-based parameter position;
            ``UNKNOWN`` where the engine leaves the type open.
        result_types: Type name per result column, when known.
    """

    prepared: bool
    parameter_types: tuple[str, ...] = ()
    result_types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Materialized:
    """Complete output of one execution, split into chunks."""

    columns: tuple[ColumnInfo, ...] = ()
    chunks: tuple[DataChunk, ...] = field(default_factory=tuple)

    @property
    def row_count(self) -> int:
        return sum(chunk.size for chunk in self.chunks)


class EngineDriver(Protocol):
    """Protocol for the native engine boundary.

    Every method either succeeds or raises a SessionError subclass;
    engine exceptions never cross this boundary untranslated.

    Thread Safety:
        open_database and cursor may be called from several threads.
        A single connection must not be used concurrently, except for
        interrupt(), which may be called while execute() runs on
        another thread.
    """

    @property
    @abstractmethod
    def version(self) -> str:
        """Return the engine library version string."""
        ...

    @abstractmethod
    def open_database(
        self,
        database: str,
        options: Mapping[str, str],
        read_only: bool = False,
    ) -> NativeConnection:
        """Open an engine instance and return its root connection.

        Raises:
            ConfigError: If an option name or value is rejected.
            OpenError: If the database cannot be opened otherwise.
        """
        ...

    @abstractmethod
    def cursor(self, root: NativeConnection) -> NativeConnection:
        """Open an additional connection on the root's engine instance.

        Raises:
            ConnectError: If the engine refuses the connection.
        """
        ...

    @abstractmethod
    def close(self, conn: NativeConnection) -> None:
        """Close a connection (closing the root closes the instance)."""
        ...

    @abstractmethod
    def extract_statements(self, conn: NativeConnection, sql: str) -> list[RawStatement]:
        """Split SQL text into statements.

        Raises:
            ParseError: On a syntax error.
        """
        ...

    @abstractmethod
    def prepare(
        self, conn: NativeConnection, name: str, statement: RawStatement
    ) -> PreparedInfo:
        """Prepare one statement under an engine-side name.

        Statements the engine cannot hold by name are reported with
        ``prepared=False`` and one untyped slot per placeholder.

        Raises:
            PrepareError: If binding the statement fails (unknown table, ...).
        """
        ...

    @abstractmethod
    def deallocate(self, conn: NativeConnection, name: str) -> None:
        """Release a named prepared statement."""
        ...

    @abstractmethod
    def execute(
        self,
        conn: NativeConnection,
        query: str,
        parameters: Sequence[Any] = (),
        chunk_size: int = 2048,
    ) -> Materialized:
        """Execute one statement and materialize its output.

        Raises:
            ExecutionError: If the engine reports a failure.
        """
        ...

    @abstractmethod
    def interrupt(self, conn: NativeConnection) -> None:
        """Request cancellation of whatever runs on the connection."""
        ...

    @abstractmethod
    def table_columns(
        self, conn: NativeConnection, schema: str, table: str
    ) -> list[ColumnInfo]:
        """Return a table's columns in declaration order ([] if absent)."""
        ...
