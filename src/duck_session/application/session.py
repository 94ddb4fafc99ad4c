"""Session - one logical connection over an engine handle.

A session runs statements one at a time. Executions happen on a
single worker thread owned by the session so callers can poll and
cancel, but a second statement cannot start while the previous
pending execution is unconsumed: the session rejects it with
ResourceMisuseError rather than queueing it.

Callers that need parallelism open more sessions on the same engine.
"""

from __future__ import annotations

import itertools
import time
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from duck_session.application.appender import Appender
from duck_session.application.export import build_copy_statement
from duck_session.application.lifecycle import Resource
from duck_session.application.pending import PendingExecution
from duck_session.application.result import Result
from duck_session.application.statement import (
    ExtractedStatements,
    PreparedStatement,
    StatementRef,
)
from duck_session.domain.entities import ColumnInfo
from duck_session.domain.errors import (
    ExecutionError,
    ParseError,
    ResourceMisuseError,
)
from duck_session.domain.value_objects import PreparedName, SessionId
from duck_session.infrastructure.config import ExecutionConfig
from duck_session.infrastructure.logging import get_logger
from duck_session.infrastructure.metrics import MetricsRegistry
from duck_session.infrastructure.tracing import trace_span
from duck_session.ports.outbound import (
    INTERRUPTED,
    EngineDriver,
    Materialized,
    NativeConnection,
    RawStatement,
)

if TYPE_CHECKING:
    from duck_session.application.engine import EngineHandle


class Session(Resource):
    """A single logical connection that serializes statement execution.

    Sessions are created by ``EngineHandle.connect()``; they are not
    thread-safe and must not be shared between threads.

    Usage:
        with engine.connect() as session:
            session.run_script("CREATE TABLE t(id INTEGER); INSERT INTO t VALUES (1)")
            with session.query("SELECT * FROM t") as result:
                rows = result.fetchall()
    """

    _kind = "session"

    def __init__(
        self,
        engine: EngineHandle,
        session_id: SessionId,
        conn: NativeConnection,
        driver: EngineDriver,
        settings: ExecutionConfig,
        metrics: MetricsRegistry,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._session_id = session_id
        self._conn = conn
        self._driver = driver
        self._settings = settings
        self._metrics = metrics
        self._worker = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"duck-session-{session_id}"
        )
        self._pending: PendingExecution | None = None
        self._extracted: list[ExtractedStatements] = []
        self._prepared: list[PreparedStatement] = []
        self._appenders: list[Appender] = []
        self._prepared_names = itertools.count(1)
        self._logger = get_logger(__name__, session_id=session_id)

    @property
    def session_id(self) -> SessionId:
        return self._session_id

    @property
    def engine(self) -> EngineHandle:
        return self._engine

    @property
    def poll_interval(self) -> float:
        return self._settings.poll_interval_seconds

    @property
    def chunk_size(self) -> int:
        return self._settings.chunk_size

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    @property
    def busy(self) -> bool:
        """True while an unconsumed pending execution exists."""
        return self._pending is not None and not self._pending.consumed

    # -- statement pipeline ------------------------------------------------

    def extract(self, sql: str) -> ExtractedStatements:
        """Split SQL text into independently preparable statements.

        Raises:
            ParseError: On a syntax error, or if the text holds no statement.
        """
        self._ensure_idle()
        if not sql or not sql.strip():
            raise ParseError("no statements found in empty SQL text")
        raw = self._driver.extract_statements(self._conn, sql)
        if not raw:
            raise ParseError("no statements found in SQL text")
        extracted = ExtractedStatements(self, raw)
        self._extracted.append(extracted)
        return extracted

    def prepare(self, ref: StatementRef) -> PreparedStatement:
        """Prepare one extracted statement.

        Raises:
            PrepareError: If the engine cannot bind the statement.
            ResourceMisuseError: If the ref belongs to another session or
                its set was released.
        """
        self._ensure_idle()
        if ref.owner.session is not self:
            raise ResourceMisuseError("statement was extracted by a different session")
        if ref.owner.closed:
            raise ResourceMisuseError("extracted statement set is closed")

        name = PreparedName(f"duck_session_s{self._session_id}_p{next(self._prepared_names)}")
        info = self._driver.prepare(
            self._conn,
            name,
            RawStatement(ref.query, ref.statement_type, ref.parameter_names),
        )
        statement = PreparedStatement(self, ref, name if info.prepared else None, info)
        self._prepared.append(statement)
        self._logger.debug(
            "statement_prepared",
            statement_type=ref.statement_type,
            parameters=statement.parameter_count,
            deferred=not info.prepared,
        )
        return statement

    def run_script(self, sql: str) -> int:
        """Execute every statement in ``sql`` in order.

        Returns:
            The number of statements executed.
        """
        with self.extract(sql) as statements:
            for ref in statements:
                with self.prepare(ref) as statement:
                    with statement.execute():
                        pass
            return len(statements)

    def query(self, sql: str, *parameters: Any) -> Result:
        """Run exactly one statement and return its Result.

        The Result owns the statement it came from; closing the Result
        releases the whole chain.

        Raises:
            ParseError: If ``sql`` does not hold exactly one statement.
        """
        with ExitStack() as stack:
            statements = stack.enter_context(self.extract(sql))
            if len(statements) != 1:
                raise ParseError(f"expected 1 statement, got {len(statements)}")
            statement = stack.enter_context(self.prepare(statements[0]))
            if parameters or statement.parameter_count:
                statement.bind_all(*parameters)
            result = statement.execute()
            result._own(stack.pop_all())
            return result

    def appender(self, table: str, schema: str = "main") -> Appender:
        """Open a bulk loader on ``schema.table``."""
        self._ensure_idle()
        appender = Appender(self, table, schema, flush_threshold=self._settings.appender_flush_rows)
        self._appenders.append(appender)
        return appender

    def export_csv(
        self,
        table: str | None,
        path: str | Path,
        *,
        delimiter: str = ",",
        header: bool = True,
        query: str | None = None,
    ) -> Path:
        """Export a table (or a query's rows) to a CSV file via the engine.

        Pass ``table=None`` together with ``query`` to export a query.

        Returns:
            The path written.
        """
        target = Path(path)
        copy_sql = build_copy_statement(
            target, table=table, query=query, delimiter=delimiter, header=header
        )
        self.run_script(copy_sql)
        self._logger.info("csv_exported", path=str(target), table=table)
        return target

    # -- execution internals -----------------------------------------------

    def _ensure_idle(self) -> None:
        """Reject new work while a pending execution is unconsumed."""
        self._ensure_open()
        pending = self._pending
        if pending is None:
            return
        if pending.cancel_requested:
            self._drain(pending)
        elif not pending.consumed:
            raise ResourceMisuseError(
                f"session {self._session_id} has an unconsumed pending execution; "
                "take its result, cancel it or close it first"
            )
        self._pending = None

    def _drain(self, pending: PendingExecution) -> None:
        """Wait for a cancelled execution to leave the worker thread."""
        future = pending._future
        if future is None:
            return
        interval = max(self._settings.poll_interval_seconds, 0.01)
        while not future.done():
            self._driver.interrupt(self._conn)
            wait_futures([future], timeout=interval)

    def _start(
        self,
        statement: PreparedStatement | None,
        query: str,
        parameters: Sequence[Any],
        statement_type: str,
    ) -> PendingExecution:
        self._ensure_idle()
        pending = PendingExecution(self, statement, query, parameters, statement_type)
        pending._attach(self._worker.submit(self._run, pending))
        self._pending = pending
        return pending

    def _run(self, pending: PendingExecution) -> Materialized:
        """Worker-thread body of one execution."""
        kind = (pending.statement_type or "unknown").lower()
        if pending.cancel_requested:
            raise ExecutionError("execution cancelled before start", INTERRUPTED)

        started = time.perf_counter()
        with trace_span(
            "session.execute",
            {"db.operation": kind},
            session_id=self._session_id,
        ):
            try:
                materialized = self._driver.execute(
                    self._conn, pending.query, pending.parameters, self._settings.chunk_size
                )
            except ExecutionError as exc:
                status = "cancelled" if exc.status == INTERRUPTED else "error"
                self._metrics.statements_total.labels(statement_type=kind, status=status).inc()
                self._logger.warning(
                    "statement_failed", statement_type=kind, status=exc.status, error=exc.message
                )
                raise

        elapsed = time.perf_counter() - started
        self._metrics.statements_total.labels(statement_type=kind, status="success").inc()
        self._metrics.statement_latency_seconds.labels(statement_type=kind).observe(elapsed)
        self._metrics.rows_fetched_total.inc(materialized.row_count)
        self._logger.debug(
            "statement_executed",
            statement_type=kind,
            rows=materialized.row_count,
            chunks=len(materialized.chunks),
            latency_seconds=round(elapsed, 6),
        )
        return materialized

    def _execute_direct(self, query: str, parameters: Sequence[Any], statement_type: str) -> Result:
        """Run engine-generated SQL without the extract/prepare steps."""
        with self._start(None, query, parameters, statement_type) as pending:
            return pending.wait()

    def _table_columns(self, schema: str, table: str) -> list[ColumnInfo]:
        self._ensure_idle()
        return self._driver.table_columns(self._conn, schema, table)

    def _interrupt(self) -> None:
        self._driver.interrupt(self._conn)

    def _record_cancellation(self, pending: PendingExecution) -> None:
        self._metrics.cancellations_total.inc()

    def _deallocate(self, name: PreparedName) -> None:
        self._ensure_idle()
        self._driver.deallocate(self._conn, name)

    # -- child bookkeeping -------------------------------------------------

    def _extracted_closed(self, extracted: ExtractedStatements) -> None:
        self._extracted.remove(extracted)

    def _prepared_closed(self, statement: PreparedStatement) -> None:
        self._prepared.remove(statement)

    def _appender_closed(self, appender: Appender) -> None:
        self._appenders.remove(appender)

    # -- release -----------------------------------------------------------

    def close(self) -> None:
        """Release everything the session owns, then the connection.

        Order: pending execution, appenders (flushed), results, prepared
        statements, extracted sets, connection. Every child is released
        even if one fails; the first failure is raised afterwards.
        """
        self._ensure_open()
        errors: list[Exception] = []

        pending = self._pending
        if pending is not None:
            if not pending.closed:
                pending.close()
            self._drain(pending)
            self._pending = None

        for appender in list(self._appenders):
            try:
                appender.close()
            except Exception as exc:
                errors.append(exc)

        for statement in list(self._prepared):
            try:
                result = statement._open_result
                if result is not None and not result.closed:
                    result.close()
                if not statement.closed:
                    statement.close()
            except Exception as exc:
                errors.append(exc)

        for extracted in list(self._extracted):
            try:
                if not extracted.closed:
                    extracted.close()
            except Exception as exc:
                errors.append(exc)

        self._mark_closed()
        self._worker.shutdown(wait=True)
        self._driver.close(self._conn)
        self._engine._session_closed(self)
        self._logger.info("session_closed")

        if errors:
            raise errors[0]

    def disconnect(self) -> None:
        """Alias of close()."""
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("busy" if self.busy else "idle")
        return f"Session({self._session_id}, {state})"
