"""Tagged values and engine type families.

The engine hands back plain Python objects for every cell. This module
tags them with a ValueKind so callers can tell SQL NULL apart from zero
values, and checks Python objects against engine type names before they
are bound as parameters or appended as row values.
"""

from __future__ import annotations

import datetime as _dt
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from duck_session.domain.errors import BindError


class ValueKind(Enum):
    """Families of engine values."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BLOB = "blob"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    INTERVAL = "interval"
    UUID = "uuid"
    NESTED = "nested"
    OTHER = "other"


# Inclusive ranges of the engine's fixed-width integer types
INTEGER_RANGES: dict[str, tuple[int, int]] = {
    "TINYINT": (-(2**7), 2**7 - 1),
    "SMALLINT": (-(2**15), 2**15 - 1),
    "INTEGER": (-(2**31), 2**31 - 1),
    "BIGINT": (-(2**63), 2**63 - 1),
    "HUGEINT": (-(2**127), 2**127 - 1),
    "UTINYINT": (0, 2**8 - 1),
    "USMALLINT": (0, 2**16 - 1),
    "UINTEGER": (0, 2**32 - 1),
    "UBIGINT": (0, 2**64 - 1),
    "UHUGEINT": (0, 2**128 - 1),
}

_TYPE_ALIASES: dict[str, str] = {
    "INT1": "TINYINT",
    "INT2": "SMALLINT",
    "SHORT": "SMALLINT",
    "INT": "INTEGER",
    "INT4": "INTEGER",
    "SIGNED": "INTEGER",
    "INT8": "BIGINT",
    "LONG": "BIGINT",
    "INT128": "HUGEINT",
    "UINT8": "UTINYINT",
    "UINT16": "USMALLINT",
    "UINT32": "UINTEGER",
    "UINT64": "UBIGINT",
    "UINT128": "UHUGEINT",
}

_FAMILIES: dict[str, ValueKind] = {
    **{name: ValueKind.INTEGER for name in INTEGER_RANGES},
    "BOOLEAN": ValueKind.BOOLEAN,
    "BOOL": ValueKind.BOOLEAN,
    "LOGICAL": ValueKind.BOOLEAN,
    "FLOAT": ValueKind.FLOAT,
    "FLOAT4": ValueKind.FLOAT,
    "REAL": ValueKind.FLOAT,
    "DOUBLE": ValueKind.FLOAT,
    "FLOAT8": ValueKind.FLOAT,
    "DECIMAL": ValueKind.DECIMAL,
    "NUMERIC": ValueKind.DECIMAL,
    "VARCHAR": ValueKind.TEXT,
    "TEXT": ValueKind.TEXT,
    "STRING": ValueKind.TEXT,
    "CHAR": ValueKind.TEXT,
    "BPCHAR": ValueKind.TEXT,
    "JSON": ValueKind.TEXT,
    "ENUM": ValueKind.TEXT,
    "BLOB": ValueKind.BLOB,
    "BYTEA": ValueKind.BLOB,
    "BINARY": ValueKind.BLOB,
    "VARBINARY": ValueKind.BLOB,
    "DATE": ValueKind.DATE,
    "TIME": ValueKind.TIME,
    "TIME WITH TIME ZONE": ValueKind.TIME,
    "TIMETZ": ValueKind.TIME,
    "TIMESTAMP": ValueKind.TIMESTAMP,
    "DATETIME": ValueKind.TIMESTAMP,
    "TIMESTAMP WITH TIME ZONE": ValueKind.TIMESTAMP,
    "TIMESTAMPTZ": ValueKind.TIMESTAMP,
    "TIMESTAMP_S": ValueKind.TIMESTAMP,
    "TIMESTAMP_MS": ValueKind.TIMESTAMP,
    "TIMESTAMP_NS": ValueKind.TIMESTAMP,
    "TIMESTAMP_US": ValueKind.TIMESTAMP,
    "INTERVAL": ValueKind.INTERVAL,
    "UUID": ValueKind.UUID,
    "STRUCT": ValueKind.NESTED,
    "MAP": ValueKind.NESTED,
    "LIST": ValueKind.NESTED,
    "UNION": ValueKind.NESTED,
}

# Python types accepted for each family when binding or appending
_ACCEPTED: dict[ValueKind, tuple[type, ...]] = {
    ValueKind.BOOLEAN: (bool,),
    ValueKind.INTEGER: (int,),
    ValueKind.FLOAT: (int, float),
    ValueKind.DECIMAL: (int, float, Decimal),
    ValueKind.TEXT: (str,),
    ValueKind.BLOB: (bytes, bytearray, memoryview),
    ValueKind.DATE: (_dt.date,),
    ValueKind.TIME: (_dt.time,),
    ValueKind.TIMESTAMP: (_dt.datetime,),
    ValueKind.INTERVAL: (_dt.timedelta,),
    ValueKind.UUID: (uuid.UUID, str),
    ValueKind.NESTED: (list, tuple, dict),
}


def base_type_name(type_name: str) -> str:
    """Normalize an engine type name, dropping modifiers like ``(18,3)``."""
    name = type_name.strip().upper()
    if "(" in name:
        name = name.split("(", 1)[0].strip()
    return _TYPE_ALIASES.get(name, name)


def type_family(type_name: str | None) -> ValueKind:
    """Map an engine type name onto its value family.

    Unknown or unresolved names (``UNKNOWN``, ``ANY``, ``NULL``) map to
    ValueKind.OTHER, which accepts any Python object.
    """
    if not type_name:
        return ValueKind.OTHER
    if type_name.rstrip().endswith("]"):
        return ValueKind.NESTED
    return _FAMILIES.get(base_type_name(type_name), ValueKind.OTHER)


@dataclass(frozen=True, slots=True)
class Value:
    """A decoded cell or parameter tagged with its family.

    Attributes:
        kind: The value family; ValueKind.NULL for SQL NULL.
        value: The Python object (None only for NULL).

    Example:
        >>> Value.of(0)
        Value(kind=<ValueKind.INTEGER: 'integer'>, value=0)
        >>> Value.of(None).is_null
        True
    """

    kind: ValueKind
    value: Any = None

    def __post_init__(self) -> None:
        if (self.kind is ValueKind.NULL) != (self.value is None):
            raise ValueError(f"{self.kind.name} value cannot hold {self.value!r}")

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    @classmethod
    def null(cls) -> Value:
        return cls(ValueKind.NULL)

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Tag a Python object with the family it belongs to."""
        if isinstance(obj, Value):
            return obj
        return cls(kind_of(obj), obj)

    def __str__(self) -> str:
        return "NULL" if self.is_null else str(self.value)


def kind_of(obj: Any) -> ValueKind:
    """Return the family of a Python object as the engine produces it."""
    # Order matters: bool is an int, datetime is a date.
    if obj is None:
        return ValueKind.NULL
    if isinstance(obj, bool):
        return ValueKind.BOOLEAN
    if isinstance(obj, int):
        return ValueKind.INTEGER
    if isinstance(obj, float):
        return ValueKind.FLOAT
    if isinstance(obj, Decimal):
        return ValueKind.DECIMAL
    if isinstance(obj, str):
        return ValueKind.TEXT
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return ValueKind.BLOB
    if isinstance(obj, _dt.datetime):
        return ValueKind.TIMESTAMP
    if isinstance(obj, _dt.date):
        return ValueKind.DATE
    if isinstance(obj, _dt.time):
        return ValueKind.TIME
    if isinstance(obj, _dt.timedelta):
        return ValueKind.INTERVAL
    if isinstance(obj, uuid.UUID):
        return ValueKind.UUID
    if isinstance(obj, (list, tuple, dict)):
        return ValueKind.NESTED
    return ValueKind.OTHER


def decode(raw: Any) -> Value:
    """Decode one engine cell into a tagged value."""
    return Value.of(raw)


def coerce(type_name: str | None, obj: Any) -> Value:
    """Check a Python object against an engine type and tag it.

    Args:
        type_name: Engine type of the target parameter or column.
        obj: Plain Python object or an already tagged Value.

    Returns:
        The tagged value, ready to hand to the engine.

    Raises:
        BindError: If the object does not belong to the type's family
            or falls outside an integer type's range.
    """
    value = Value.of(obj)
    if value.is_null:
        return value

    family = type_family(type_name)
    if family is ValueKind.OTHER:
        return value

    raw = value.value
    accepted = _ACCEPTED[family]
    if not isinstance(raw, accepted):
        raise BindError(
            f"cannot use {type(raw).__name__} value {raw!r} for {type_name} "
            f"({family.value}) parameter"
        )
    if isinstance(raw, bool) and family is not ValueKind.BOOLEAN:
        raise BindError(f"cannot use bool value {raw!r} for {type_name} parameter")
    if family is ValueKind.DATE and isinstance(raw, _dt.datetime):
        raise BindError(f"cannot use datetime value {raw!r} for {type_name} parameter")

    if family is ValueKind.INTEGER:
        bounds = INTEGER_RANGES.get(base_type_name(type_name or ""))
        if bounds is not None and not bounds[0] <= raw <= bounds[1]:
            raise BindError(
                f"value {raw} out of range for {type_name} [{bounds[0]}, {bounds[1]}]"
            )

    return value
