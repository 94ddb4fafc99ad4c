"""DuckDB implementation of the EngineDriver port.

Wraps the ``duckdb`` Python package. Each engine instance is represented
by its root connection; sessions get their own connections through
``cursor()``, which share the instance (catalog, storage, transactions)
but keep independent client state.

Statements are prepared with SQL ``PREPARE`` so the engine binds them
up front. Result types come from the ``duckdb_prepared_statements()``
table function; it reports placeholders as ``UNKNOWN``, so their types
are recovered from the statement by ``parameter_types``. Statement
types the grammar does not accept after ``PREPARE ... AS`` (most DDL)
are left for the engine to validate at execution.

Results are materialized with ``fetchmany`` into chunks of at most
``chunk_size`` rows, matching the engine's vector size by default.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

import duckdb

from duck_session.adapters.outbound.parameter_types import (
    UNKNOWN_TYPE,
    delete_as_select,
    infer_from_tree,
    infer_insert,
    resolve_parameter_types,
)
from duck_session.domain.entities import ColumnInfo, DataChunk
from duck_session.domain.errors import (
    ConfigError,
    ConnectError,
    ExecutionError,
    OpenError,
    ParseError,
    PrepareError,
)
from duck_session.infrastructure.logging import get_logger
from duck_session.ports.outbound.engine_driver import (
    INTERRUPTED,
    Materialized,
    NativeConnection,
    PreparedInfo,
    RawStatement,
)

_PREPARED_METADATA_SQL = (
    "SELECT parameter_types, result_types "
    "FROM duckdb_prepared_statements() WHERE name = ?"
)

_TABLE_COLUMNS_SQL = (
    "SELECT column_name, data_type FROM information_schema.columns "
    "WHERE table_schema = ? AND table_name = ? ORDER BY ordinal_position"
)

_SERIALIZE_SQL = "SELECT json_serialize_sql(?)"


def _ordered_names(names: Any) -> tuple[str, ...]:
    """Order placeholder names by position; ``?`` placeholders are numbered."""
    def key(name: str) -> tuple[bool, int, str]:
        return (not name.isdigit(), int(name) if name.isdigit() else 0, name)

    return tuple(sorted((str(name) for name in names or ()), key=key))


def _status(exc: BaseException) -> str:
    return type(exc).__name__


def _message(exc: BaseException) -> str:
    return str(exc).strip() or _status(exc)


class DuckDBDriver:
    """EngineDriver backed by the duckdb package."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    @property
    def version(self) -> str:
        return duckdb.__version__

    def open_database(
        self,
        database: str,
        options: Mapping[str, str],
        read_only: bool = False,
    ) -> NativeConnection:
        config = {str(name): str(value) for name, value in options.items()}
        try:
            conn = duckdb.connect(database=database, read_only=read_only, config=config)
        except duckdb.Error as exc:
            if config and (
                isinstance(exc, duckdb.InvalidInputException)
                or "option" in str(exc).lower()
                or "configuration" in str(exc).lower()
            ):
                raise ConfigError(
                    f"engine rejected configuration: {_message(exc)}", _status(exc)
                ) from exc
            raise OpenError(f"failed to open {database}: {_message(exc)}", _status(exc)) from exc

        # Options must be known by name; never let a typo pass silently.
        unknown = self._unknown_options(conn, config)
        if unknown:
            conn.close()
            raise ConfigError(f"unrecognized option(s): {', '.join(sorted(unknown))}")

        self._logger.debug("database_opened", database=database, options=sorted(config))
        return conn

    def _unknown_options(self, conn: NativeConnection, config: Mapping[str, str]) -> set[str]:
        if not config:
            return set()
        rows = conn.execute("SELECT name FROM duckdb_settings()").fetchall()
        known = {str(row[0]).lower() for row in rows}
        return {name for name in config if name.lower() not in known}

    def cursor(self, root: NativeConnection) -> NativeConnection:
        try:
            return root.cursor()
        except duckdb.Error as exc:
            raise ConnectError(f"failed to connect: {_message(exc)}", _status(exc)) from exc

    def close(self, conn: NativeConnection) -> None:
        conn.close()

    def extract_statements(self, conn: NativeConnection, sql: str) -> list[RawStatement]:
        try:
            statements = conn.extract_statements(sql)
        except duckdb.Error as exc:
            raise ParseError(_message(exc), _status(exc)) from exc

        return [
            RawStatement(
                query=statement.query.strip(),
                statement_type=getattr(statement.type, "name", str(statement.type)),
                parameter_names=_ordered_names(statement.named_parameters),
            )
            for statement in statements
        ]

    def prepare(
        self, conn: NativeConnection, name: str, statement: RawStatement
    ) -> PreparedInfo:
        try:
            conn.execute(f"PREPARE {name} AS {statement.query}")
        except (duckdb.ParserException, duckdb.NotImplementedException):
            # Not preparable by name (DDL and friends); bound at execution.
            return PreparedInfo(
                prepared=False,
                parameter_types=(UNKNOWN_TYPE,) * statement.parameter_count,
            )
        except duckdb.Error as exc:
            raise PrepareError(_message(exc), _status(exc)) from exc

        try:
            row = conn.execute(_PREPARED_METADATA_SQL, [name]).fetchone()
        except duckdb.Error as exc:
            raise PrepareError(_message(exc), _status(exc)) from exc

        reported, result_types = row if row is not None else ((), ())
        reported = tuple(str(t) for t in reported or ())
        count = statement.parameter_count or len(reported)
        inferred = self._infer_parameter_types(conn, statement) if count else {}
        return PreparedInfo(
            prepared=True,
            parameter_types=resolve_parameter_types(count, inferred, reported),
            result_types=tuple(str(t) for t in result_types or ()),
        )

    def _infer_parameter_types(
        self, conn: NativeConnection, statement: RawStatement
    ) -> dict[int, str]:
        def lookup(schema: str, table: str) -> list[ColumnInfo]:
            return self.table_columns(conn, schema, table)

        if statement.statement_type == "INSERT":
            return infer_insert(statement.query, lookup)

        query: str | None = statement.query
        if statement.statement_type == "DELETE":
            query = delete_as_select(query)
        elif statement.statement_type != "SELECT":
            query = None
        if query is None:
            return {}

        try:
            row = conn.execute(_SERIALIZE_SQL, [query]).fetchone()
        except duckdb.Error as exc:
            self._logger.debug("parameter_inference_unavailable", error=_message(exc))
            return {}
        if row is None or row[0] is None:
            return {}
        return infer_from_tree(json.loads(row[0]), lookup)

    def deallocate(self, conn: NativeConnection, name: str) -> None:
        try:
            conn.execute(f"DEALLOCATE {name}")
        except duckdb.Error as exc:
            raise ExecutionError(_message(exc), _status(exc)) from exc

    def execute(
        self,
        conn: NativeConnection,
        query: str,
        parameters: Sequence[Any] = (),
        chunk_size: int = 2048,
    ) -> Materialized:
        try:
            conn.execute(query, list(parameters) if parameters else None)
            description = conn.description
            if not description:
                return Materialized()

            columns = tuple(
                ColumnInfo(name=str(entry[0]), type_name=str(entry[1]))
                for entry in description
            )
            chunks: list[DataChunk] = []
            while True:
                rows = conn.fetchmany(chunk_size)
                if not rows:
                    break
                chunks.append(DataChunk(columns=columns, rows=tuple(tuple(r) for r in rows)))
        except duckdb.InterruptException as exc:
            raise ExecutionError("execution interrupted", INTERRUPTED) from exc
        except duckdb.Error as exc:
            raise ExecutionError(_message(exc), _status(exc)) from exc

        return Materialized(columns=columns, chunks=tuple(chunks))

    def interrupt(self, conn: NativeConnection) -> None:
        conn.interrupt()

    def table_columns(
        self, conn: NativeConnection, schema: str, table: str
    ) -> list[ColumnInfo]:
        try:
            rows = conn.execute(_TABLE_COLUMNS_SQL, [schema, table]).fetchall()
        except duckdb.Error as exc:
            raise ExecutionError(_message(exc), _status(exc)) from exc
        return [ColumnInfo(name=str(name), type_name=str(type_name)) for name, type_name in rows]
