"""Unit tests for tagged values and type families."""

from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

import pytest

from duck_session.domain.errors import BindError
from duck_session.domain.value_objects import (
    Value,
    ValueKind,
    base_type_name,
    coerce,
    decode,
    type_family,
)


@pytest.mark.unit
class TestValue:
    """Tests for Value."""

    def test_null_is_distinct_from_zero(self) -> None:
        """Test that SQL NULL and integer zero decode differently."""
        null = decode(None)
        zero = decode(0)

        assert null.is_null
        assert null == Value.null()
        assert not zero.is_null
        assert zero == Value(ValueKind.INTEGER, 0)
        assert null != zero

    def test_null_kind_requires_none(self) -> None:
        """Test that a NULL kind cannot carry a payload and vice versa."""
        with pytest.raises(ValueError):
            Value(ValueKind.NULL, 0)
        with pytest.raises(ValueError):
            Value(ValueKind.INTEGER)

    def test_of_returns_tagged_value_unchanged(self) -> None:
        value = Value(ValueKind.TEXT, "Bob")
        assert Value.of(value) is value

    def test_str(self) -> None:
        assert str(Value.null()) == "NULL"
        assert str(decode("Alice")) == "Alice"
        assert str(decode(2)) == "2"

    @pytest.mark.parametrize(
        ("raw", "kind"),
        [
            (True, ValueKind.BOOLEAN),
            (7, ValueKind.INTEGER),
            (1.5, ValueKind.FLOAT),
            (Decimal("1.25"), ValueKind.DECIMAL),
            ("x", ValueKind.TEXT),
            (b"\x00", ValueKind.BLOB),
            (dt.date(2024, 1, 2), ValueKind.DATE),
            (dt.time(12, 30), ValueKind.TIME),
            (dt.datetime(2024, 1, 2, 3, 4), ValueKind.TIMESTAMP),
            (dt.timedelta(days=1), ValueKind.INTERVAL),
            (uuid.UUID(int=1), ValueKind.UUID),
            ([1, 2], ValueKind.NESTED),
            ({"a": 1}, ValueKind.NESTED),
            (object(), ValueKind.OTHER),
        ],
    )
    def test_decode_kinds(self, raw: object, kind: ValueKind) -> None:
        """Test that each engine value family is recognized."""
        assert decode(raw).kind is kind


@pytest.mark.unit
class TestTypeFamily:
    """Tests for engine type name mapping."""

    def test_modifiers_and_aliases(self) -> None:
        assert base_type_name("decimal(18,3)") == "DECIMAL"
        assert base_type_name("int4") == "INTEGER"
        assert base_type_name(" varchar ") == "VARCHAR"

    @pytest.mark.parametrize(
        ("type_name", "kind"),
        [
            ("INTEGER", ValueKind.INTEGER),
            ("UBIGINT", ValueKind.INTEGER),
            ("VARCHAR", ValueKind.TEXT),
            ("DECIMAL(10,2)", ValueKind.DECIMAL),
            ("TIMESTAMP WITH TIME ZONE", ValueKind.TIMESTAMP),
            ("INTEGER[]", ValueKind.NESTED),
            ("STRUCT(a INTEGER)", ValueKind.NESTED),
            ("UNKNOWN", ValueKind.OTHER),
            (None, ValueKind.OTHER),
        ],
    )
    def test_families(self, type_name: str | None, kind: ValueKind) -> None:
        assert type_family(type_name) is kind


@pytest.mark.unit
class TestCoerce:
    """Tests for checking values against engine types."""

    def test_matching_value(self) -> None:
        assert coerce("INTEGER", 2) == Value(ValueKind.INTEGER, 2)
        assert coerce("VARCHAR", "Dave") == Value(ValueKind.TEXT, "Dave")
        assert coerce("DOUBLE", 3) == Value(ValueKind.INTEGER, 3)

    def test_none_binds_to_any_type(self) -> None:
        """Test that None becomes SQL NULL regardless of type."""
        for type_name in ("INTEGER", "VARCHAR", "DATE", "BLOB"):
            assert coerce(type_name, None).is_null

    def test_family_mismatch(self) -> None:
        with pytest.raises(BindError):
            coerce("INTEGER", "two")
        with pytest.raises(BindError):
            coerce("VARCHAR", 2)

    def test_bool_is_not_an_integer(self) -> None:
        """Test that bool is rejected for integer parameters."""
        with pytest.raises(BindError):
            coerce("INTEGER", True)
        assert coerce("BOOLEAN", True).value is True

    def test_datetime_is_not_a_date(self) -> None:
        with pytest.raises(BindError):
            coerce("DATE", dt.datetime(2024, 1, 1, 12))
        assert coerce("DATE", dt.date(2024, 1, 1)).kind is ValueKind.DATE

    @pytest.mark.parametrize(
        ("type_name", "value"),
        [
            ("TINYINT", 128),
            ("TINYINT", -129),
            ("UTINYINT", -1),
            ("INTEGER", 2**31),
            ("UINTEGER", 2**32),
        ],
    )
    def test_integer_out_of_range(self, type_name: str, value: int) -> None:
        """Test that integers outside the type's range are rejected."""
        with pytest.raises(BindError, match="out of range"):
            coerce(type_name, value)

    def test_unknown_type_accepts_anything(self) -> None:
        assert coerce("UNKNOWN", "x").value == "x"
        assert coerce(None, 1.5).value == 1.5
