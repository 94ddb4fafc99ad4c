"""Bulk row loader for one table.

Values are appended column by column in table order; ``end_row()``
moves the completed row into a buffer. The buffer is written with a
single multi-row INSERT, so a flush either lands every buffered row
or none of them.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from duck_session.application.export import quote_identifier, quote_table
from duck_session.application.lifecycle import Resource
from duck_session.domain.entities import ColumnInfo
from duck_session.domain.errors import AppenderError, ExecutionError, FlushError
from duck_session.domain.value_objects import Value, coerce
from duck_session.infrastructure.logging import get_logger
from duck_session.infrastructure.tracing import trace_span

if TYPE_CHECKING:
    from duck_session.application.session import Session


class Appender(Resource):
    """Buffered, type-checked inserter for ``schema.table``.

    Usage:
        with session.appender("test") as appender:
            appender.append(4)
            appender.append("Dave")
            appender.end_row()
    """

    _kind = "appender"

    def __init__(
        self,
        session: Session,
        table: str,
        schema: str = "main",
        flush_threshold: int = 2048,
    ) -> None:
        super().__init__()
        if flush_threshold < 1:
            raise AppenderError(f"flush threshold must be positive, got {flush_threshold}")
        columns = session._table_columns(schema, table)
        if not columns:
            raise AppenderError(f"table {schema}.{table} does not exist")

        self._session = session
        self._table = table
        self._schema = schema
        self._columns: tuple[ColumnInfo, ...] = tuple(columns)
        self._flush_threshold = flush_threshold
        self._row: list[Value] = []
        self._buffer: list[tuple[Value, ...]] = []
        self._target = quote_table(table, schema)
        self._column_list = ", ".join(quote_identifier(c.name) for c in self._columns)
        self._logger = get_logger(
            __name__, session_id=session.session_id, table=f"{schema}.{table}"
        )

    @property
    def table(self) -> str:
        return self._table

    @property
    def schema(self) -> str:
        return self._schema

    @property
    def columns(self) -> tuple[ColumnInfo, ...]:
        return self._columns

    @property
    def buffered_rows(self) -> int:
        """Completed rows waiting for the next flush."""
        return len(self._buffer)

    @property
    def row_position(self) -> int:
        """Number of values in the current partial row."""
        return len(self._row)

    def append(self, value: Any) -> None:
        """Append one value to the current row.

        Raises:
            AppenderError: If the current row already has a value for every column.
            BindError: If the value does not fit the column's type.
        """
        self._ensure_open()
        position = len(self._row)
        if position >= len(self._columns):
            raise AppenderError(
                f"row already has {len(self._columns)} value(s); call end_row() first"
            )
        column = self._columns[position]
        self._row.append(coerce(column.type_name, value))

    def end_row(self) -> None:
        """Finish the current row and buffer it.

        Raises:
            AppenderError: If the row does not have a value for every column.
        """
        self._ensure_open()
        if len(self._row) != len(self._columns):
            raise AppenderError(
                f"row has {len(self._row)} of {len(self._columns)} value(s)"
            )
        self._buffer.append(tuple(self._row))
        self._row = []
        if len(self._buffer) >= self._flush_threshold:
            self.flush()

    def append_row(self, *values: Any) -> None:
        """Append a complete row; nothing is kept if a value is rejected."""
        self._ensure_open()
        if self._row:
            raise AppenderError("cannot append a row while a partial row is open")
        if len(values) != len(self._columns):
            raise AppenderError(
                f"row has {len(values)} of {len(self._columns)} value(s)"
            )
        try:
            for value in values:
                self.append(value)
        except Exception:
            self._row = []
            raise
        self.end_row()

    def _insert_statement(self, rows: int) -> str:
        placeholders = "(" + ", ".join("?" for _ in self._columns) + ")"
        values = ", ".join(placeholders for _ in range(rows))
        return f"INSERT INTO {self._target} ({self._column_list}) VALUES {values}"

    def flush(self) -> int:
        """Write every buffered row in one statement.

        Returns:
            The number of rows written.

        Raises:
            FlushError: If the engine rejects the batch; the buffer is kept.
        """
        self._ensure_open()
        if not self._buffer:
            return 0

        rows = len(self._buffer)
        parameters = [value.value for row in self._buffer for value in row]
        metrics = self._session.metrics
        started = time.perf_counter()
        with trace_span(
            "appender.flush",
            {"db.sql.table": f"{self._schema}.{self._table}", "appender.rows": rows},
            session_id=self._session.session_id,
        ):
            try:
                result = self._session._execute_direct(
                    self._insert_statement(rows), parameters, "INSERT"
                )
            except ExecutionError as exc:
                metrics.appender_flushes_total.labels(status="error").inc()
                self._logger.error("appender_flush_failed", rows=rows, error=exc.message)
                raise FlushError(f"flush of {rows} row(s) failed: {exc.message}", exc.status) from exc
            result.close()

        self._buffer.clear()
        metrics.appender_flushes_total.labels(status="success").inc()
        metrics.appender_rows_total.inc(rows)
        self._logger.debug(
            "appender_flushed", rows=rows, latency_seconds=round(time.perf_counter() - started, 6)
        )
        return rows

    def close(self) -> None:
        """Flush complete rows and release the appender.

        Raises:
            AppenderError: If a partial row is open; it is not written.
            FlushError: If the final flush fails.
        """
        self._ensure_open()
        try:
            self.flush()
            if self._row:
                raise AppenderError(
                    f"appender closed with a partial row of {len(self._row)} value(s)"
                )
        finally:
            self._mark_closed()
            self._row = []
            self._buffer.clear()
            self._session._appender_closed(self)

    def __repr__(self) -> str:
        return (
            f"Appender({self._schema}.{self._table}, buffered={len(self._buffer)}, "
            f"partial={len(self._row)})"
        )
