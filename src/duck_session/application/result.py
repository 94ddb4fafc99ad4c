"""Result cursor over a completed execution.

A Result exposes column metadata and the chunks the engine produced.
Chunks can be addressed by index (``chunk(i)``, ``value(i, col, row)``)
or read forward with ``fetch_chunk()`` and row iteration. The forward
cursor never rewinds: once exhausted, reading the rows again requires
executing the statement again.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import TYPE_CHECKING, Any, Callable, Iterator

from duck_session.application.lifecycle import Resource
from duck_session.domain.entities import ColumnInfo, DataChunk
from duck_session.domain.value_objects import Value

if TYPE_CHECKING:
    from duck_session.ports.outbound import Materialized


class Result(Resource):
    """Chunked, typed view over one statement's output.

    Usage:
        with session.query("SELECT * FROM test ORDER BY id") as result:
            result.column_name(0)   # 'id'
            result.value(0, 1, 0)   # Value(kind=ValueKind.TEXT, value='Alice')
            rows = result.fetchall()
    """

    _kind = "result"

    def __init__(
        self,
        materialized: Materialized,
        statement_type: str = "",
        on_close: Callable[[Result], None] | None = None,
    ) -> None:
        super().__init__()
        self._columns: tuple[ColumnInfo, ...] = materialized.columns
        self._chunks: tuple[DataChunk, ...] = materialized.chunks
        self._statement_type = statement_type
        self._on_close = on_close
        self._owned: ExitStack | None = None
        self._position = 0

    # -- column metadata -------------------------------------------------

    @property
    def statement_type(self) -> str:
        return self._statement_type

    @property
    def columns(self) -> tuple[ColumnInfo, ...]:
        self._ensure_open()
        return self._columns

    @property
    def column_count(self) -> int:
        self._ensure_open()
        return len(self._columns)

    def column_name(self, index: int) -> str:
        return self._column(index).name

    def column_type(self, index: int) -> str:
        return self._column(index).type_name

    def _column(self, index: int) -> ColumnInfo:
        self._ensure_open()
        if not 0 <= index < len(self._columns):
            raise IndexError(f"column {index} out of range [0, {len(self._columns)})")
        return self._columns[index]

    # -- indexed chunk access --------------------------------------------

    @property
    def chunk_count(self) -> int:
        self._ensure_open()
        return len(self._chunks)

    @property
    def row_count(self) -> int:
        self._ensure_open()
        return sum(chunk.size for chunk in self._chunks)

    def chunk(self, index: int) -> DataChunk:
        self._ensure_open()
        if not 0 <= index < len(self._chunks):
            raise IndexError(f"chunk {index} out of range [0, {len(self._chunks)})")
        return self._chunks[index]

    def rows_in_chunk(self, index: int) -> int:
        return self.chunk(index).size

    def value(self, chunk_index: int, column: int, row: int) -> Value:
        """Decode one cell; SQL NULL comes back as ``Value.null()``."""
        return self.chunk(chunk_index).get_value(column, row)

    # -- forward cursor ----------------------------------------------------

    def fetch_chunk(self) -> DataChunk | None:
        """Return the next unread chunk, or None once the cursor is exhausted."""
        self._ensure_open()
        if self._position >= len(self._chunks):
            return None
        chunk = self._chunks[self._position]
        self._position += 1
        return chunk

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while True:
            chunk = self.fetch_chunk()
            if chunk is None:
                return
            yield from chunk.rows

    def fetchall(self) -> list[tuple[Any, ...]]:
        """Read every remaining row through the forward cursor."""
        return list(self)

    # -- release -----------------------------------------------------------

    def _own(self, stack: ExitStack) -> None:
        """Take over releasing the statement chain that produced this result."""
        self._owned = stack

    def close(self) -> None:
        self._mark_closed()
        self._chunks = ()
        if self._on_close is not None:
            self._on_close(self)
        if self._owned is not None:
            self._owned.close()

    def __repr__(self) -> str:
        if self._closed:
            return "Result(closed)"
        names = ", ".join(column.name for column in self._columns)
        return f"Result(columns=[{names}], rows={self.row_count}, chunks={len(self._chunks)})"
