"""Wire-level feedback protocol: field outcomes, call results, JSON Schema."""

from tool2agent.protocol.feedback import (
    ABSENT,
    Absent,
    FieldOutcome,
    StructuralInvariantViolation,
    outcome_violations,
)
from tool2agent.protocol.json_schema import field_outcome_schema, tool_call_result_schema
from tool2agent.protocol.results import (
    ToolCallAccepted,
    ToolCallRejected,
    ToolCallResult,
    result_from_dict,
)

__all__ = [
    "ABSENT",
    "Absent",
    "FieldOutcome",
    "StructuralInvariantViolation",
    "ToolCallAccepted",
    "ToolCallRejected",
    "ToolCallResult",
    "field_outcome_schema",
    "outcome_violations",
    "result_from_dict",
    "tool_call_result_schema",
]
