"""Domain entities.

Exports:
    - ColumnInfo: Name and engine type of a result column
    - DataChunk: Immutable block of result rows
"""

from duck_session.domain.entities.chunk import ColumnInfo, DataChunk

__all__ = [
    "ColumnInfo",
    "DataChunk",
]
