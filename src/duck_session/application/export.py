"""CSV export through the engine's COPY statement."""

from __future__ import annotations

from pathlib import Path

from duck_session.domain.errors import ParseError


def quote_table(table: str, schema: str | None = None) -> str:
    """Render a (schema-qualified) table name as quoted engine SQL."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(table)}"
    return quote_identifier(table)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def build_copy_statement(
    path: str | Path,
    *,
    table: str | None = None,
    query: str | None = None,
    delimiter: str = ",",
    header: bool = True,
) -> str:
    """Build ``COPY <source> TO '<path>' (FORMAT csv, HEADER, DELIMITER ',')``.

    Exactly one of ``table`` and ``query`` names the source. A dotted
    table name is treated as ``schema.table``.

    Raises:
        ParseError: If neither or both sources are given, or the query is empty.
    """
    if (table is None) == (query is None):
        raise ParseError("export needs exactly one of a table or a query")

    if table is not None:
        schema, _, name = table.rpartition(".")
        source = quote_table(name, schema or None)
    else:
        body = (query or "").strip().rstrip(";").strip()
        if not body:
            raise ParseError("export query is empty")
        source = f"({body})"

    options = [
        "FORMAT csv",
        "HEADER" if header else "HEADER false",
        f"DELIMITER {quote_literal(delimiter)}",
    ]
    return f"COPY {source} TO {quote_literal(str(path))} ({', '.join(options)})"
