"""Statement pipeline: extracted statements and prepared statements.

Pipeline per statement:
    EXTRACTED -> PREPARED -> BOUND (optional) -> PENDING -> EXECUTED | FAILED

``Session.extract()`` splits SQL text into StatementRefs held by an
ExtractedStatements set. ``Session.prepare()`` turns one ref into a
PreparedStatement whose 1-based parameter slots carry the types the
engine inferred. Binding checks each value against its slot's type.

Release order: a statement's Result and PendingExecution go first,
then the statement, then the extracted set it came from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, Sequence, overload

from duck_session.application.lifecycle import Resource
from duck_session.domain.errors import BindError, ResourceMisuseError
from duck_session.domain.value_objects import (
    PreparedName,
    StatementState,
    Value,
    coerce,
)
from duck_session.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from duck_session.application.pending import PendingExecution
    from duck_session.application.result import Result
    from duck_session.application.session import Session
    from duck_session.ports.outbound import PreparedInfo, RawStatement


logger = get_logger(__name__)


@dataclass(frozen=True)
class StatementRef:
    """One statement split out of a SQL text.

    Attributes:
        owner: The ExtractedStatements set the statement belongs to.
        index: Position within the set (0-based).
        query: SQL text of this single statement.
        statement_type: Engine statement type (SELECT, INSERT, CREATE, ...).
        parameter_names: Placeholder names in position order (``?`` is numbered).
    """

    owner: ExtractedStatements
    index: int
    query: str
    statement_type: str
    parameter_names: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"StatementRef({self.index}, {self.statement_type}, {self.query!r})"


class ExtractedStatements(Resource, Sequence[StatementRef]):
    """Immutable sequence of statements extracted from one SQL text."""

    _kind = "extracted statement set"

    def __init__(self, session: Session, raw: Sequence[RawStatement]) -> None:
        super().__init__()
        self._session = session
        self._refs = tuple(
            StatementRef(
                self,
                index,
                statement.query,
                statement.statement_type,
                statement.parameter_names,
            )
            for index, statement in enumerate(raw)
        )
        self._live_statements = 0

    @property
    def session(self) -> Session:
        return self._session

    @overload
    def __getitem__(self, index: int) -> StatementRef: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[StatementRef]: ...

    def __getitem__(self, index):
        self._ensure_open()
        return self._refs[index]

    def __len__(self) -> int:
        return len(self._refs)

    def __iter__(self) -> Iterator[StatementRef]:
        self._ensure_open()
        return iter(self._refs)

    def _statement_prepared(self) -> None:
        self._live_statements += 1

    def _statement_closed(self) -> None:
        self._live_statements -= 1

    def close(self) -> None:
        """Release the set.

        Raises:
            ResourceMisuseError: If statements prepared from it are still open.
        """
        if not self._closed and self._live_statements:
            raise ResourceMisuseError(
                f"cannot release extracted statements while "
                f"{self._live_statements} prepared statement(s) are open"
            )
        self._mark_closed()
        self._session._extracted_closed(self)

    def __repr__(self) -> str:
        return f"ExtractedStatements({len(self._refs)} statements)"


class PreparedStatement(Resource):
    """A statement prepared by the engine with positional parameter slots.

    Usage:
        with session.prepare(statements[0]) as stmt:
            stmt.bind(1, 2)
            with stmt.execute() as result:
                ...
    """

    _kind = "prepared statement"

    def __init__(
        self,
        session: Session,
        ref: StatementRef,
        name: PreparedName | None,
        info: PreparedInfo,
    ) -> None:
        super().__init__()
        self._session = session
        self._ref = ref
        self._name = name
        self._parameter_types = info.parameter_types
        self._result_types = info.result_types
        self._slots: list[Value | None] = [None] * len(info.parameter_types)
        self._state = StatementState.PREPARED
        self._pending: PendingExecution | None = None
        self._open_result: Result | None = None
        ref.owner._statement_prepared()

    # -- metadata ----------------------------------------------------------

    @property
    def query(self) -> str:
        return self._ref.query

    @property
    def statement_type(self) -> str:
        return self._ref.statement_type

    @property
    def name(self) -> PreparedName | None:
        """Engine-side prepared name; None for statements bound at execution."""
        return self._name

    @property
    def state(self) -> StatementState:
        return StatementState.CLOSED if self._closed else self._state

    @property
    def parameter_count(self) -> int:
        return len(self._slots)

    @property
    def parameter_types(self) -> tuple[str, ...]:
        return self._parameter_types

    @property
    def result_types(self) -> tuple[str, ...]:
        return self._result_types

    def parameter_type(self, position: int) -> str:
        self._check_position(position)
        return self._parameter_types[position - 1]

    @property
    def parameters(self) -> tuple[Value | None, ...]:
        """Bound values per slot; None marks an unbound slot."""
        return tuple(self._slots)

    # -- binding -----------------------------------------------------------

    def _check_position(self, position: int) -> None:
        if isinstance(position, bool) or not isinstance(position, int):
            raise BindError(f"parameter position must be an int, got {position!r}")
        if not 1 <= position <= len(self._slots):
            if not self._slots:
                raise BindError(f"statement takes no parameters (position {position})")
            raise BindError(
                f"parameter position {position} out of range [1, {len(self._slots)}]"
            )

    def bind(self, position: int, value: Any) -> None:
        """Bind a value to a 1-based parameter position.

        Args:
            position: Parameter position, starting at 1.
            value: Plain Python object or tagged Value; None binds NULL.

        Raises:
            BindError: On a bad position or a value outside the parameter's
                type. Other slots are left unchanged.
        """
        self._ensure_open()
        self._check_position(position)
        self._slots[position - 1] = coerce(self._parameter_types[position - 1], value)
        self._state = StatementState.BOUND

    def bind_all(self, *values: Any) -> None:
        """Bind every parameter at once; nothing changes if one value fails."""
        self._ensure_open()
        if len(values) != len(self._slots):
            raise BindError(
                f"statement takes {len(self._slots)} parameter(s), got {len(values)}"
            )
        checked = [
            coerce(type_name, value)
            for type_name, value in zip(self._parameter_types, values)
        ]
        self._slots[:] = checked
        if checked:
            self._state = StatementState.BOUND

    def clear_bindings(self) -> None:
        self._ensure_open()
        self._slots = [None] * len(self._slots)
        self._state = StatementState.PREPARED

    # -- execution ---------------------------------------------------------

    def execute_async(self) -> PendingExecution:
        """Start executing on the session's worker and return immediately.

        Raises:
            BindError: If a parameter is unbound.
            ResourceMisuseError: If the previous Result of this statement
                is still open, or the session has another unconsumed execution.
        """
        self._ensure_open()
        if self._open_result is not None:
            raise ResourceMisuseError(
                "previous result of this statement is still open; close it before re-executing"
            )
        unbound = [str(i + 1) for i, slot in enumerate(self._slots) if slot is None]
        if unbound:
            raise BindError(f"parameter(s) {', '.join(unbound)} not bound")

        parameters = [slot.value for slot in self._slots if slot is not None]
        pending = self._session._start(self, self.query, parameters, self.statement_type)
        self._pending = pending
        self._state = StatementState.PENDING
        return pending

    def execute(self) -> Result:
        """Execute and poll until the Result is ready."""
        with self.execute_async() as pending:
            return pending.wait()

    def _execution_ready(self, pending: PendingExecution, result: Result) -> None:
        self._open_result = result
        self._state = StatementState.EXECUTED

    def _execution_failed(self, pending: PendingExecution) -> None:
        self._state = StatementState.FAILED

    def _result_closed(self, result: Result) -> None:
        if self._open_result is result:
            self._open_result = None

    # -- release -----------------------------------------------------------

    def close(self) -> None:
        """Release the statement and its engine-side prepared state.

        Raises:
            ResourceMisuseError: If its Result or an unconsumed pending
                execution is still open.
        """
        if not self._closed:
            if self._open_result is not None:
                raise ResourceMisuseError(
                    "cannot release a prepared statement while its result is open"
                )
            if self._pending is not None and not self._pending.consumed:
                raise ResourceMisuseError(
                    "cannot release a prepared statement while its execution is pending"
                )
        self._mark_closed()
        try:
            if self._name is not None:
                self._session._deallocate(self._name)
        finally:
            self._ref.owner._statement_closed()
            self._session._prepared_closed(self)

    def __repr__(self) -> str:
        return (
            f"PreparedStatement({self.statement_type}, params={len(self._slots)}, "
            f"state={self.state.value})"
        )
