"""Interactive menu for the session examples.

The menu reads choices from stdin and writes the transcript to stdout;
structured logs go to stderr.

Usage:
    duck-session
    python -m duck_session --log-level INFO --keep-csv
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence, TextIO

from duck_session.adapters.outbound import DuckDBDriver
from duck_session.application import EngineHandle, Session
from duck_session.domain.errors import SessionError
from duck_session.infrastructure.config import Config, get_config
from duck_session.infrastructure.logging import get_logger, setup_logging
from duck_session.infrastructure.metrics import get_metrics, setup_metrics
from duck_session.infrastructure.tracing import setup_tracing

QUIT_CHOICES = frozenset({"q", "Q", "quit", "exit"})

_SEED_SQL = """
CREATE TABLE test (id INTEGER, name VARCHAR);
INSERT INTO test VALUES (1, 'Alice'), (2, 'Bob'), (3, 'Charlie');
"""

logger = get_logger(__name__)


def _print_rows(session: Session, out: TextIO) -> None:
    with session.query("SELECT * FROM test ORDER BY id") as result:
        for chunk_index in range(result.chunk_count):
            for row in range(result.rows_in_chunk(chunk_index)):
                row_id = result.value(chunk_index, 0, row)
                name = result.value(chunk_index, 1, row)
                print(f"  Row {row}: ID={row_id}, Name={name}", file=out)


def run_basic_example(config: Config, out: TextIO = sys.stdout) -> None:
    """Create, query, append to and export a small table.

    Errors propagate to the caller; every resource opened here is
    released on the way out.
    """
    print("\n=== Basic DuckDB Example ===", file=out)

    with EngineHandle.from_config(config) as engine, engine.connect() as session:
        session.run_script(_SEED_SQL)

        with session.query("SELECT * FROM test ORDER BY id") as result:
            names = ", ".join(result.column_name(i) for i in range(result.column_count))
            print(f"Columns: [{names}]", file=out)
        print("Results:", file=out)
        _print_rows(session, out)

        print("\nUsing prepared statements:", file=out)
        with session.extract("SELECT * FROM test WHERE id = ?") as statements:
            with session.prepare(statements[0]) as lookup:
                lookup.bind(1, 2)
                with lookup.execute() as found:
                    if found.row_count:
                        print(
                            f"  Found: ID={found.value(0, 0, 0)}, Name={found.value(0, 1, 0)}",
                            file=out,
                        )
                    else:
                        print("  No results found.", file=out)

        print("\nAppending data:", file=out)
        with session.appender("test") as appender:
            appender.append(4)
            appender.append("Dave")
            appender.end_row()
        print("  Appended: ID=4, Name=Dave", file=out)

        print("Updated results:", file=out)
        _print_rows(session, out)

        export = config.export
        csv_path = session.export_csv(
            "test", export.csv_path, delimiter=export.delimiter, header=export.header
        )
        print(f"\nData exported to {csv_path}", file=out)
        if not export.keep_file:
            Path(csv_path).unlink(missing_ok=True)


def run_menu(stdin: TextIO, stdout: TextIO, config: Config) -> int:
    """Run the example menu until the user quits or input ends.

    Returns:
        Process exit code.
    """
    print("DuckDB Session Examples", file=stdout)
    print("=======================", file=stdout)
    print(f"DuckDB version: {DuckDBDriver().version}\n", file=stdout)

    while True:
        print("Choose an example to run:", file=stdout)
        print("1. Basic Example (In-memory database with simple queries)", file=stdout)
        print("q. Quit", file=stdout)
        print("\nEnter your choice: ", end="", file=stdout)
        stdout.flush()

        line = stdin.readline()
        if not line:
            print("\nExiting...", file=stdout)
            return 0
        choice = line.strip()

        if choice == "1":
            try:
                run_basic_example(config, stdout)
            except SessionError as e:
                logger.error("example_failed", error=str(e), error_type=type(e).__name__)
                print(f"Example failed: {e}", file=stdout)
        elif choice in QUIT_CHOICES:
            print("Exiting...", file=stdout)
            return 0
        else:
            print("Invalid choice. Please try again.", file=stdout)

        print("\nPress Enter to continue...", file=stdout)
        stdout.flush()
        if not stdin.readline():
            print("\nExiting...", file=stdout)
            return 0
        print(file=stdout)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="duck-session", description="Interactive DuckDB session examples."
    )
    parser.add_argument("--database", help="Database path (default from configuration)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default from configuration)",
    )
    parser.add_argument(
        "--keep-csv", action="store_true", help="Keep the exported CSV file"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code (0 on a normal quit).
    """
    args = _parse_args(argv)
    config = get_config()
    if args.database:
        config = config.model_copy(
            update={"engine": config.engine.model_copy(update={"database": args.database})}
        )
    if args.keep_csv:
        config = config.model_copy(
            update={"export": config.export.model_copy(update={"keep_file": True})}
        )

    observability = config.observability
    setup_logging(args.log_level or observability.log_level, observability.log_format)
    if observability.metrics_port is not None:
        setup_metrics(observability.metrics_port)
    else:
        get_metrics()
    if observability.otel_endpoint:
        setup_tracing(
            observability.otel_service_name,
            observability.otel_endpoint,
            database=config.engine.database,
        )

    return run_menu(sys.stdin, sys.stdout, config)
