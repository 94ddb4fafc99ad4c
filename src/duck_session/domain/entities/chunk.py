"""Result chunks.

A chunk is an immutable slice of a statement's output: a fixed number
of rows over a fixed set of columns, as the engine materializes them
(by default one engine vector, 2048 rows).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from duck_session.domain.value_objects import Value, ValueKind, decode, type_family


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Name and engine type of one result column."""

    name: str
    type_name: str

    @property
    def kind(self) -> ValueKind:
        """Family of the column's declared type."""
        return type_family(self.type_name)

    def __str__(self) -> str:
        return f"{self.name} {self.type_name}"


@dataclass(frozen=True, slots=True)
class DataChunk:
    """Immutable block of rows.

    Attributes:
        columns: Column metadata shared by every chunk of a result.
        rows: Raw engine rows; each tuple has len(columns) entries.
    """

    columns: tuple[ColumnInfo, ...]
    rows: tuple[tuple[Any, ...], ...]

    def __post_init__(self) -> None:
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"row {index} has {len(row)} values, expected {width}"
                )

    @property
    def size(self) -> int:
        """Number of rows in the chunk."""
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def get_value(self, column: int, row: int) -> Value:
        """Decode the cell at (column, row).

        Raises:
            IndexError: If column or row is out of range.
        """
        if not 0 <= column < len(self.columns):
            raise IndexError(f"column {column} out of range [0, {len(self.columns)})")
        if not 0 <= row < len(self.rows):
            raise IndexError(f"row {row} out of range [0, {len(self.rows)})")
        return decode(self.rows[row][column])

    def column_values(self, column: int) -> list[Value]:
        return [self.get_value(column, row) for row in range(self.size)]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return iter(self.rows)
