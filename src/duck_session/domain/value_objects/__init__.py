"""Value objects for the session domain.

Value objects are immutable types that represent domain concepts.

Exports:
    Identifiers:
        - SessionId: Identifier of a session within an engine handle
        - PreparedName: Engine-side prepared statement name
        - PendingState: Observable pending-execution states
        - StatementState: Statement pipeline lifecycle

    Values:
        - Value: Tagged cell or parameter value
        - ValueKind: Value families (integer, float, text, null, ...)
        - coerce, decode, kind_of, type_family: Type checking helpers
"""

from duck_session.domain.value_objects.identifiers import (
    PendingState,
    PreparedName,
    SessionId,
    StatementState,
)
from duck_session.domain.value_objects.values import (
    INTEGER_RANGES,
    Value,
    ValueKind,
    base_type_name,
    coerce,
    decode,
    kind_of,
    type_family,
)

__all__ = [
    # Identifiers
    "SessionId",
    "PreparedName",
    "PendingState",
    "StatementState",
    # Values
    "Value",
    "ValueKind",
    "INTEGER_RANGES",
    "base_type_name",
    "coerce",
    "decode",
    "kind_of",
    "type_family",
]
