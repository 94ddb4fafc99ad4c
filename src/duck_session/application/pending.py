"""Pending (in-flight) executions.

A PendingExecution is returned by ``PreparedStatement.execute_async()``.
The statement runs on its session's single worker thread while the
caller polls. Cancellation is cooperative: ``cancel()`` flags the
execution and interrupts the engine, then returns immediately; the
worker stops at the engine's next interruption check.

State machine:
    RUNNING -> READY        (poll() builds the Result)
    RUNNING -> CANCELLED    (cancel() or close() before READY)
    RUNNING -> (raises)     poll() raises ExecutionError on failure
"""

from __future__ import annotations

import time
from concurrent.futures import Future, wait as wait_futures
from typing import TYPE_CHECKING, Any, Sequence

from duck_session.application.lifecycle import Resource
from duck_session.application.result import Result
from duck_session.domain.errors import ExecutionError, ResourceMisuseError, SessionError
from duck_session.domain.value_objects import PendingState
from duck_session.infrastructure.logging import get_logger
from duck_session.ports.outbound import INTERRUPTED, Materialized

if TYPE_CHECKING:
    from duck_session.application.session import Session
    from duck_session.application.statement import PreparedStatement


logger = get_logger(__name__)


class PendingExecution(Resource):
    """A pollable, cancellable statement execution.

    Usage:
        with statement.execute_async() as pending:
            while pending.poll() is PendingState.RUNNING:
                do_other_work()
            result = pending.result()
    """

    _kind = "pending execution"

    def __init__(
        self,
        session: Session,
        statement: PreparedStatement | None,
        query: str,
        parameters: Sequence[Any],
        statement_type: str,
    ) -> None:
        super().__init__()
        self._session = session
        self._statement = statement
        self._query = query
        self._parameters = tuple(parameters)
        self._statement_type = statement_type
        self._future: Future[Materialized] | None = None
        self._result: Result | None = None
        self._error: SessionError | None = None
        self._cancel_requested = False
        self._consumed = False
        self._started_at = time.monotonic()

    @property
    def query(self) -> str:
        return self._query

    @property
    def parameters(self) -> tuple[Any, ...]:
        return self._parameters

    @property
    def statement_type(self) -> str:
        return self._statement_type

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def consumed(self) -> bool:
        """True once the outcome was observed, or the execution was cancelled or closed."""
        return self._consumed

    @property
    def finished(self) -> bool:
        """True once the worker thread no longer runs this execution."""
        return self._future is not None and self._future.done()

    def _attach(self, future: Future[Materialized]) -> None:
        self._future = future

    def poll(self) -> PendingState:
        """Check progress without blocking.

        Returns:
            RUNNING, READY or CANCELLED.

        Raises:
            ExecutionError: If the engine reported a failure.
            ResourceMisuseError: If the execution was closed.
        """
        self._ensure_open()
        if self._cancel_requested:
            return PendingState.CANCELLED
        if self._result is not None:
            return PendingState.READY
        if self._error is not None:
            raise self._error
        if self._future is None or not self._future.done():
            return PendingState.RUNNING

        try:
            materialized = self._future.result()
        except Exception as exc:
            self._consumed = True
            if isinstance(exc, SessionError):
                self._error = exc
            if self._statement is not None:
                self._statement._execution_failed(self)
            raise

        self._consumed = True
        on_close = self._statement._result_closed if self._statement is not None else None
        self._result = Result(materialized, self._statement_type, on_close=on_close)
        if self._statement is not None:
            self._statement._execution_ready(self, self._result)
        return PendingState.READY

    def result(self) -> Result:
        """Return the Result of a READY execution.

        Raises:
            ResourceMisuseError: If the execution is still running.
            ExecutionError: If it failed or was cancelled.
        """
        state = self.poll()
        if state is PendingState.READY:
            assert self._result is not None
            return self._result
        if state is PendingState.CANCELLED:
            raise ExecutionError("execution was cancelled", INTERRUPTED)
        raise ResourceMisuseError("execution is still running; poll until READY or wait()")

    def wait(self, timeout: float | None = None) -> Result:
        """Poll until READY and return the Result.

        Raises:
            TimeoutError: If the execution is still running after ``timeout`` seconds.
            ExecutionError: If it failed or was cancelled.
        """
        interval = self._session.poll_interval
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            state = self.poll()
            if state is not PendingState.RUNNING:
                return self.result()
            step = interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"execution still running after {timeout}s")
                step = min(step, remaining)
            assert self._future is not None
            wait_futures([self._future], timeout=step)

    def cancel(self) -> bool:
        """Request cancellation without blocking.

        Returns:
            False if the execution already finished and was observed,
            True if cancellation was requested.
        """
        if self._closed or self._consumed:
            return False
        self._cancel_requested = True
        self._consumed = True
        future = self._future
        if future is not None and not future.done() and not future.cancel():
            self._session._interrupt()
        if self._statement is not None:
            self._statement._execution_failed(self)
        self._session._record_cancellation(self)
        logger.info(
            "execution_cancelled",
            session_id=self._session.session_id,
            statement_type=self._statement_type,
            elapsed_seconds=round(time.monotonic() - self._started_at, 6),
        )
        return True

    def close(self) -> None:
        """Release the execution, cancelling it if it has not completed."""
        if not self._closed and not self._consumed:
            self.cancel()
        self._mark_closed()
        self._consumed = True

    def __repr__(self) -> str:
        if self._closed:
            state = "closed"
        elif self._cancel_requested:
            state = PendingState.CANCELLED.value
        elif self._result is not None:
            state = PendingState.READY.value
        else:
            state = PendingState.RUNNING.value
        return f"PendingExecution({self._statement_type or 'statement'}, {state})"
