"""Identifiers and lifecycle states for sessions and statements."""

from __future__ import annotations

from enum import Enum
from typing import NewType


SessionId = NewType("SessionId", int)
"""Identifier of a session within its engine handle. Monotonically increasing."""

PreparedName = NewType("PreparedName", str)
"""Engine-side name of a prepared statement (``PREPARE <name> AS ...``)."""


class PendingState(Enum):
    """Observable states of a pending execution.

    Failures are not a state: polling a failed execution raises
    ExecutionError.
    """

    RUNNING = "running"
    READY = "ready"
    CANCELLED = "cancelled"


class StatementState(Enum):
    """Lifecycle of a statement in the pipeline.

    EXTRACTED -> PREPARED -> BOUND -> PENDING -> EXECUTED | FAILED
    """

    EXTRACTED = "extracted"
    PREPARED = "prepared"
    BOUND = "bound"
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"
    CLOSED = "closed"
