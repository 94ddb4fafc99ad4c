"""Integration tests for the extract/prepare/bind/execute pipeline."""

from __future__ import annotations

import time

import pytest

from duck_session.application import Session
from duck_session.domain.errors import (
    BindError,
    ExecutionError,
    ParseError,
    PrepareError,
    ResourceMisuseError,
)
from duck_session.domain.value_objects import PendingState, StatementState, Value, ValueKind

LONG_RUNNING_SQL = "SELECT count(*) FROM range(1000000000) a, range(1000000000) b"


@pytest.mark.integration
class TestExtract:
    """Tests for splitting SQL text into statements."""

    def test_statement_count(self, session: Session) -> None:
        """Test that N statements yield N refs in order."""
        with session.extract("SELECT 1; SELECT 2;\nSELECT 3") as statements:
            assert len(statements) == 3
            assert [ref.index for ref in statements] == [0, 1, 2]
            assert all(ref.statement_type == "SELECT" for ref in statements)
            assert "2" in statements[1].query

    @pytest.mark.parametrize("sql", ["", "   ", "\n\t"])
    def test_empty_text(self, session: Session, sql: str) -> None:
        with pytest.raises(ParseError):
            session.extract(sql)

    def test_syntax_error(self, session: Session) -> None:
        """Test that a syntax error carries the engine message."""
        with pytest.raises(ParseError) as excinfo:
            session.extract("SELEC 1")
        assert excinfo.value.message
        assert excinfo.value.status is not None

    def test_statements_from_closed_set(self, session: Session) -> None:
        statements = session.extract("SELECT 1")
        ref = statements[0]
        statements.close()

        with pytest.raises(ResourceMisuseError):
            session.prepare(ref)

    def test_statements_from_other_session(self, session: Session) -> None:
        with session.engine.connect() as other, other.extract("SELECT 1") as statements:
            with pytest.raises(ResourceMisuseError):
                session.prepare(statements[0])


@pytest.mark.integration
class TestPrepareAndBind:
    """Tests for preparing statements and binding parameters."""

    def test_prepare_unknown_table(self, session: Session) -> None:
        """Test that a catalog failure surfaces as PrepareError."""
        with session.extract("SELECT * FROM no_such_table") as statements:
            with pytest.raises(PrepareError) as excinfo:
                session.prepare(statements[0])
        assert "no_such_table" in excinfo.value.message

    def test_parameter_metadata(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test WHERE id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                assert stmt.parameter_count == 1
                assert stmt.parameter_type(1) == "INTEGER"
                assert stmt.state is StatementState.PREPARED

    def test_ddl_prepares_without_parameters(self, session: Session) -> None:
        with session.extract("CREATE TABLE t (id INTEGER)") as statements:
            with session.prepare(statements[0]) as stmt:
                assert stmt.parameter_count == 0
                with stmt.execute():
                    pass

        with session.query("SELECT count(*) FROM t") as result:
            assert result.fetchall() == [(0,)]

    @pytest.mark.parametrize("position", [0, 2, -1])
    def test_position_out_of_range(self, seeded: Session, position: int) -> None:
        with seeded.extract("SELECT * FROM test WHERE id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                with pytest.raises(BindError):
                    stmt.bind(position, 1)

    def test_mismatch_leaves_other_slots(self, seeded: Session) -> None:
        """Test that a rejected value changes no slot."""
        with seeded.extract("SELECT * FROM test WHERE id = ? OR id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                stmt.bind(1, 1)
                stmt.bind(2, 3)

                with pytest.raises(BindError):
                    stmt.bind(2, "three")
                with pytest.raises(BindError):
                    stmt.bind(1, 2**40)

                assert stmt.parameters == (Value(ValueKind.INTEGER, 1), Value(ValueKind.INTEGER, 3))

    def test_bind_all_is_atomic(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test WHERE id = ? OR id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                stmt.bind_all(1, 2)
                with pytest.raises(BindError):
                    stmt.bind_all(3, "x")
                assert [v.value for v in stmt.parameters] == [1, 2]

    def test_unbound_parameter(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test WHERE id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                with pytest.raises(BindError):
                    stmt.execute_async()

    def test_bound_lookup(self, seeded: Session) -> None:
        """Test looking up a row through a bound parameter."""
        with seeded.extract("SELECT * FROM test WHERE id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                stmt.bind(1, 2)
                with stmt.execute() as result:
                    assert result.row_count == 1
                    assert result.value(0, 1, 0) == Value(ValueKind.TEXT, "Bob")

    def test_null_parameter(self, seeded: Session) -> None:
        with seeded.query("SELECT count(*) FROM test WHERE id = ?", None) as result:
            assert result.fetchall() == [(0,)]

    def test_clear_bindings(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test WHERE id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                stmt.bind(1, 2)
                stmt.clear_bindings()
                assert stmt.parameters == (None,)
                with pytest.raises(BindError):
                    stmt.execute()


@pytest.mark.integration
class TestParameterTypes:
    """Tests for the types reported for placeholders."""

    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT * FROM test WHERE name = ? AND id = ?", ("VARCHAR", "INTEGER")),
            ("SELECT t.name FROM test t WHERE t.id > ?", ("INTEGER",)),
            ("SELECT * FROM test WHERE id BETWEEN ? AND ?", ("INTEGER", "INTEGER")),
            ("SELECT * FROM test WHERE name IN (?, ?)", ("VARCHAR", "VARCHAR")),
            ("SELECT ?::DATE AS d", ("DATE",)),
            ("INSERT INTO test VALUES (?, ?)", ("INTEGER", "VARCHAR")),
            ("INSERT INTO test (name, id) VALUES (?, ?)", ("VARCHAR", "INTEGER")),
            ("DELETE FROM test WHERE id = ?", ("INTEGER",)),
        ],
    )
    def test_inferred_types(self, seeded: Session, sql: str, expected: tuple[str, ...]) -> None:
        with seeded.extract(sql) as statements:
            with seeded.prepare(statements[0]) as stmt:
                assert stmt.parameter_types == expected

    def test_mixed_types_bind_by_position(self, seeded: Session) -> None:
        """Test that each slot checks values against its own column."""
        with seeded.extract("SELECT id FROM test WHERE name = ? AND id = ?") as statements:
            with seeded.prepare(statements[0]) as stmt:
                with pytest.raises(BindError):
                    stmt.bind(1, 2)
                with pytest.raises(BindError):
                    stmt.bind(2, "Bob")

                stmt.bind_all("Bob", 2)
                with stmt.execute() as result:
                    assert result.fetchall() == [(2,)]

    def test_insert_rejects_wrong_type(self, seeded: Session) -> None:
        with seeded.extract("INSERT INTO test VALUES (?, ?)") as statements:
            with seeded.prepare(statements[0]) as stmt:
                with pytest.raises(BindError):
                    stmt.bind_all("four", 4)

                stmt.bind_all(4, "Dave")
                with stmt.execute():
                    pass

        with seeded.query("SELECT name FROM test WHERE id = 4") as result:
            assert result.fetchall() == [("Dave",)]

    def test_unresolved_placeholder_accepts_any_value(self, session: Session) -> None:
        with session.extract("SELECT ? AS anything") as statements:
            with session.prepare(statements[0]) as stmt:
                assert stmt.parameter_types == ("UNKNOWN",)
                stmt.bind(1, "text")
                with stmt.execute() as result:
                    assert result.fetchall() == [("text",)]

    def test_deferred_statement_keeps_placeholders(self, session: Session) -> None:
        """Test that DDL the engine prepares at execution can still be bound."""
        with session.extract("CREATE TABLE q AS SELECT ?::INTEGER AS x") as statements:
            with session.prepare(statements[0]) as stmt:
                assert stmt.name is None
                assert stmt.parameter_count == 1

                with pytest.raises(BindError):
                    stmt.execute()

                stmt.bind(1, 5)
                with stmt.execute():
                    pass

        with session.query("SELECT x FROM q") as result:
            assert result.fetchall() == [(5,)]


@pytest.mark.integration
class TestExecution:
    """Tests for synchronous and pending execution."""

    def test_run_script(self, session: Session) -> None:
        count = session.run_script(
            "CREATE TABLE t (id INTEGER); INSERT INTO t VALUES (1); INSERT INTO t VALUES (2);"
        )
        assert count == 3

    def test_execution_error(self, seeded: Session) -> None:
        """Test that an engine failure at execution raises ExecutionError."""
        with pytest.raises(ExecutionError) as excinfo:
            seeded.run_script("SELECT CAST(name AS INTEGER) FROM test")
        assert excinfo.value.status is not None

    def test_session_usable_after_error(self, seeded: Session) -> None:
        with pytest.raises(ExecutionError):
            seeded.run_script("SELECT CAST(name AS INTEGER) FROM test")

        with seeded.query("SELECT count(*) FROM test") as result:
            assert result.fetchall() == [(3,)]

    def test_poll_until_ready(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test ORDER BY id") as statements:
            with seeded.prepare(statements[0]) as stmt:
                with stmt.execute_async() as pending:
                    state = pending.poll()
                    while state is PendingState.RUNNING:
                        time.sleep(0.001)
                        state = pending.poll()

                    assert state is PendingState.READY
                    with pending.result() as result:
                        assert result.row_count == 3
                    assert stmt.state is StatementState.EXECUTED

    def test_result_before_ready(self, session: Session) -> None:
        with session.extract(LONG_RUNNING_SQL) as statements:
            with session.prepare(statements[0]) as stmt:
                with stmt.execute_async() as pending:
                    if pending.poll() is PendingState.RUNNING:
                        with pytest.raises(ResourceMisuseError):
                            pending.result()
                    pending.cancel()

    def test_session_rejects_second_statement(self, session: Session) -> None:
        """Test that an unconsumed pending execution blocks new statements."""
        with session.extract("SELECT 42") as statements:
            with session.prepare(statements[0]) as stmt:
                pending = stmt.execute_async()
                assert session.busy

                with pytest.raises(ResourceMisuseError):
                    session.extract("SELECT 1")

                with pending.wait() as result:
                    assert result.fetchall() == [(42,)]
                pending.close()

        assert not session.busy
        with session.query("SELECT 1") as result:
            assert result.fetchall() == [(1,)]

    def test_wait_timeout(self, session: Session) -> None:
        with session.extract(LONG_RUNNING_SQL) as statements:
            with session.prepare(statements[0]) as stmt:
                with stmt.execute_async() as pending:
                    with pytest.raises(TimeoutError):
                        pending.wait(timeout=0.05)

    @pytest.mark.slow
    def test_cancel_long_running_query(self, session: Session, metrics_registry) -> None:
        """Test that cancelling leaves the session usable."""
        with session.extract(LONG_RUNNING_SQL) as statements:
            with session.prepare(statements[0]) as stmt:
                pending = stmt.execute_async()
                time.sleep(0.05)

                assert pending.cancel() is True
                assert pending.poll() is PendingState.CANCELLED
                assert pending.cancel() is False
                with pytest.raises(ExecutionError):
                    pending.result()
                assert stmt.state is StatementState.FAILED
                pending.close()

        with session.query("SELECT 42") as result:
            assert result.fetchall() == [(42,)]
        assert metrics_registry._registry.get_sample_value(
            "duck_session_cancellations_total"
        ) == 1.0

    def test_close_session_with_running_query(self, session: Session) -> None:
        """Test that closing a session cancels and drains its execution."""
        statements = session.extract(LONG_RUNNING_SQL)
        stmt = session.prepare(statements[0])
        pending = stmt.execute_async()

        session.close()

        assert pending.closed
        assert stmt.closed
        assert statements.closed


@pytest.mark.integration
class TestReleaseOrder:
    """Tests for resource release ordering."""

    def test_reexecute_with_open_result(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test") as statements:
            with seeded.prepare(statements[0]) as stmt:
                result = stmt.execute()
                with pytest.raises(ResourceMisuseError):
                    stmt.execute()
                result.close()

                with stmt.execute() as again:
                    assert again.row_count == 3

    def test_close_statement_with_open_result(self, seeded: Session) -> None:
        with seeded.extract("SELECT * FROM test") as statements:
            stmt = seeded.prepare(statements[0])
            result = stmt.execute()

            with pytest.raises(ResourceMisuseError):
                stmt.close()

            result.close()
            stmt.close()
            assert stmt.state is StatementState.CLOSED

    def test_close_extracted_with_open_statement(self, session: Session) -> None:
        statements = session.extract("SELECT 1")
        stmt = session.prepare(statements[0])

        with pytest.raises(ResourceMisuseError):
            statements.close()

        stmt.close()
        statements.close()

    def test_double_close(self, session: Session) -> None:
        statements = session.extract("SELECT 1")
        statements.close()

        with pytest.raises(ResourceMisuseError):
            statements.close()

    def test_query_result_owns_statement(self, seeded: Session) -> None:
        """Test that closing a query result releases its whole chain."""
        result = seeded.query("SELECT name FROM test WHERE id = ?", 3)
        assert result.fetchall() == [("Charlie",)]

        result.close()

        assert seeded._prepared == []
        assert seeded._extracted == []

    def test_query_needs_one_statement(self, session: Session) -> None:
        with pytest.raises(ParseError):
            session.query("SELECT 1; SELECT 2")
        assert session._extracted == []
