"""Parameter type inference for prepared statements.

The engine leaves ``?`` and ``$n`` placeholders typed as ``UNKNOWN`` in
its prepared-statement catalog until values arrive, so the types are
recovered from the statement itself:

- SELECT (and DELETE, read as the equivalent SELECT): the engine's own
  parser serializes the statement to JSON; a placeholder compared with a
  column (``=``, ``<``, ``IN``, ``BETWEEN``) takes that column's type, and
  ``CAST(? AS T)`` / ``?::T`` takes ``T``.
- INSERT ... VALUES: a placeholder standing alone in a VALUES tuple takes
  the type of the column it is inserted into.

Anything else keeps ``UNKNOWN``, which accepts any value.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from duck_session.domain.entities import ColumnInfo

UNKNOWN_TYPE = "UNKNOWN"

ColumnLookup = Callable[[str, str], list[ColumnInfo]]
"""(schema, table) -> columns, [] when the table does not exist."""

_DEFAULT_SCHEMA = "main"

_COMPARISONS = frozenset(
    {
        "COMPARE_EQUAL",
        "COMPARE_NOTEQUAL",
        "COMPARE_LESSTHAN",
        "COMPARE_GREATERTHAN",
        "COMPARE_LESSTHANOREQUALTO",
        "COMPARE_GREATERTHANOREQUALTO",
        "COMPARE_DISTINCT_FROM",
        "COMPARE_NOT_DISTINCT_FROM",
    }
)

_IDENTIFIER = r'(?:"(?:[^"]|"")*"|[A-Za-z_][\w$]*)'

_INSERT_RE = re.compile(
    rf"^\s*INSERT\s+(?:OR\s+\w+\s+)?INTO\s+"
    rf"(?P<target>{_IDENTIFIER}(?:\s*\.\s*{_IDENTIFIER}){{0,2}})\s*"
    rf"(?:\((?P<columns>[^)]*)\))?\s*VALUES\s*(?P<values>\(.*)$",
    re.IGNORECASE | re.DOTALL,
)

_DELETE_RE = re.compile(r"^\s*DELETE\s+FROM\s+(?P<rest>.*)$", re.IGNORECASE | re.DOTALL)

_PLACEHOLDER_RE = re.compile(r"^(?:\?|\$(?P<number>\d+))$")


def split_identifiers(text: str) -> list[str]:
    """Split ``a."b c".d`` or ``a, "b"`` into unquoted identifier names."""
    names = []
    for quoted, bare in re.findall(r'"((?:[^"]|"")*)"|([^\s.,"]+)', text):
        names.append(quoted.replace('""', '"') if quoted else bare)
    return names


def delete_as_select(query: str) -> str | None:
    """Rewrite ``DELETE FROM t WHERE ...`` as ``SELECT * FROM t WHERE ...``."""
    match = _DELETE_RE.match(query)
    if match is None:
        return None
    return f"SELECT * FROM {match.group('rest')}"


# -- INSERT ... VALUES -----------------------------------------------------


def _values_tuples(text: str) -> list[list[str]] | None:
    """Split ``(a, b), (c, d)`` into element texts.

    Returns None when the VALUES list cannot be read reliably.
    """
    tuples: list[list[str]] = []
    current: list[str] = []
    element: list[str] = []
    depth = 0
    quote: str | None = None

    for char in text:
        if quote is not None:
            element.append(char)
            if char == quote:
                quote = None
            continue
        if char in "'\"":
            quote = char
            element.append(char)
        elif char == "(":
            depth += 1
            if depth > 1:
                element.append(char)
        elif char == ")":
            depth -= 1
            if depth < 0:
                return None
            if depth == 0:
                current.append("".join(element).strip())
                tuples.append(current)
                current, element = [], []
            else:
                element.append(char)
        elif depth == 0:
            if char in ", \t\r\n;":
                continue
            # ON CONFLICT / RETURNING and friends follow the last tuple.
            break
        elif char == "," and depth == 1:
            current.append("".join(element).strip())
            element = []
        else:
            element.append(char)

    if quote is not None or depth != 0:
        return None
    return tuples


def infer_insert(query: str, lookup: ColumnLookup) -> dict[int, str]:
    """Map VALUES placeholders of an INSERT onto their target columns."""
    match = _INSERT_RE.match(query)
    if match is None:
        return {}
    target = split_identifiers(match.group("target"))
    schema = target[-2] if len(target) >= 2 else _DEFAULT_SCHEMA
    columns = lookup(schema, target[-1])
    if not columns:
        return {}

    by_name = {column.name.lower(): column for column in columns}
    if match.group("columns") is not None:
        names = split_identifiers(match.group("columns"))
        if any(name.lower() not in by_name for name in names):
            return {}
        targets = [by_name[name.lower()] for name in names]
    else:
        targets = list(columns)

    tuples = _values_tuples(match.group("values"))
    if tuples is None:
        return {}

    inferred: dict[int, str] = {}
    next_position = 1
    for row in tuples:
        for index, element in enumerate(row):
            placeholder = _PLACEHOLDER_RE.match(element)
            if placeholder is None:
                if "?" in element or "$" in element:
                    # Placeholders inside expressions shift the numbering.
                    return {}
                continue
            if placeholder.group("number") is not None:
                position = int(placeholder.group("number"))
            else:
                position = next_position
                next_position += 1
            if index < len(targets):
                inferred.setdefault(position, targets[index].type_name)
    return inferred


# -- SELECT via the serialized parse tree -----------------------------------


@dataclass(frozen=True)
class _TableRef:
    schema: str
    name: str
    alias: str


def _walk(node: Any) -> Iterator[dict[str, Any]]:
    if isinstance(node, dict):
        yield node
        for child in node.values():
            yield from _walk(child)
    elif isinstance(node, list):
        for child in node:
            yield from _walk(child)


def _parameter_position(node: Any) -> int | None:
    if not isinstance(node, dict) or node.get("class") != "PARAMETER":
        return None
    identifier = node.get("identifier", node.get("parameter_nr"))
    if isinstance(identifier, int):
        return identifier
    if isinstance(identifier, str) and identifier.isdigit():
        return int(identifier)
    return None


def logical_type_name(logical_type: Any) -> str | None:
    """Render a serialized logical type as an engine type name."""
    if not isinstance(logical_type, dict):
        return None
    type_id = logical_type.get("id")
    if not isinstance(type_id, str) or type_id in {"USER", "INVALID", "UNKNOWN", "ANY", "SQLNULL"}:
        return None
    info = logical_type.get("type_info")
    if type_id == "DECIMAL" and isinstance(info, dict) and "width" in info:
        return f"DECIMAL({info['width']},{info.get('scale', 0)})"
    return type_id


class _Scope:
    """Column types of every base table the statement mentions."""

    def __init__(self, tree: Any, lookup: ColumnLookup) -> None:
        self._tables: list[tuple[_TableRef, dict[str, str]]] = []
        for node in _walk(tree):
            if node.get("type") != "BASE_TABLE" or "table_name" not in node:
                continue
            ref = _TableRef(
                schema=node.get("schema_name") or _DEFAULT_SCHEMA,
                name=node["table_name"],
                alias=node.get("alias") or "",
            )
            columns = lookup(ref.schema, ref.name)
            self._tables.append(
                (ref, {column.name.lower(): column.type_name for column in columns})
            )

    def column_type(self, column_names: list[str]) -> str | None:
        if not column_names:
            return None
        column = column_names[-1].lower()
        qualifier = column_names[-2].lower() if len(column_names) >= 2 else None

        found = set()
        for ref, columns in self._tables:
            if qualifier is not None and qualifier not in (ref.alias.lower(), ref.name.lower()):
                continue
            if column in columns:
                found.add(columns[column])
        # Ambiguous names stay unresolved.
        return found.pop() if len(found) == 1 else None


def _expression_type(node: Any, scope: _Scope) -> str | None:
    if not isinstance(node, dict):
        return None
    kind = node.get("class")
    if kind == "COLUMN_REF":
        return scope.column_type(list(node.get("column_names") or []))
    if kind == "CAST":
        return logical_type_name(node.get("cast_type"))
    if kind == "CONSTANT":
        value = node.get("value")
        if isinstance(value, dict) and not value.get("is_null", False):
            return logical_type_name(value.get("type"))
    return None


def _pairs(node: dict[str, Any]) -> Iterator[tuple[Any, Any]]:
    """Yield (placeholder candidate, typed partner) pairs for one expression."""
    kind = node.get("class")
    if kind == "COMPARISON" and node.get("type") in _COMPARISONS:
        yield node.get("left"), node.get("right")
        yield node.get("right"), node.get("left")
    elif kind == "BETWEEN":
        yield node.get("lower"), node.get("input")
        yield node.get("upper"), node.get("input")
        yield node.get("input"), node.get("lower")
    elif kind == "OPERATOR" and node.get("type") in {"COMPARE_IN", "COMPARE_NOT_IN"}:
        children = node.get("children") or []
        if children:
            for child in children[1:]:
                yield child, children[0]
            if len(children) > 1:
                yield children[0], children[1]


def infer_from_tree(tree: Any, lookup: ColumnLookup) -> dict[int, str]:
    """Infer placeholder types from a ``json_serialize_sql`` document."""
    if not isinstance(tree, dict) or tree.get("error"):
        return {}

    scope = _Scope(tree.get("statements"), lookup)
    inferred: dict[int, str] = {}
    for node in _walk(tree.get("statements")):
        if node.get("class") == "CAST":
            position = _parameter_position(node.get("child"))
            type_name = logical_type_name(node.get("cast_type"))
            if position is not None and type_name is not None:
                inferred.setdefault(position, type_name)
            continue
        for candidate, partner in _pairs(node):
            position = _parameter_position(candidate)
            if position is None:
                continue
            type_name = _expression_type(partner, scope)
            if type_name is not None:
                inferred.setdefault(position, type_name)
    return inferred


def resolve_parameter_types(
    count: int,
    inferred: dict[int, str],
    reported: tuple[str, ...] = (),
) -> tuple[str, ...]:
    """Combine inferred types with what the engine catalog reported.

    The catalog lists types without positions, so a reported type is
    only used when every parameter reports the same one.
    """
    known = {name for name in reported if name and name.upper() != UNKNOWN_TYPE}
    uniform = known.pop() if len(known) == 1 and len(reported) == count else None
    return tuple(
        inferred.get(position) or uniform or UNKNOWN_TYPE
        for position in range(1, count + 1)
    )
