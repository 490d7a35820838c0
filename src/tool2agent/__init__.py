"""
tool2agent — structured, dependency-ordered feedback for agent tool calls.

Purpose
- Package root. Re-exports the small public API: building a tool spec,
  running ``fixup`` on a partial input, and the protocol result types.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from tool2agent.engine import (
    ContextScopeError,
    CycleError,
    DanglingReferenceError,
    DuplicateFieldError,
    FieldContext,
    FieldSpec,
    FixupSettings,
    ShapeMismatchError,
    SpecError,
    ToolSpec,
    ToolSpecBuilder,
    build_spec,
    compute_order,
    fixup,
)
from tool2agent.protocol import (
    ABSENT,
    FieldOutcome,
    StructuralInvariantViolation,
    ToolCallAccepted,
    ToolCallRejected,
    ToolCallResult,
)
from tool2agent.schema import FieldShape, InputShape
from tool2agent.tool import Tool
from tool2agent.utils import CancellationToken

__version__ = "0.3.0"

__all__ = [
    "ABSENT",
    "CancellationToken",
    "ContextScopeError",
    "CycleError",
    "DanglingReferenceError",
    "DuplicateFieldError",
    "FieldContext",
    "FieldOutcome",
    "FieldShape",
    "FieldSpec",
    "FixupSettings",
    "InputShape",
    "ShapeMismatchError",
    "SpecError",
    "StructuralInvariantViolation",
    "Tool",
    "ToolCallAccepted",
    "ToolCallRejected",
    "ToolCallResult",
    "ToolSpec",
    "ToolSpecBuilder",
    "__version__",
    "build_spec",
    "compute_order",
    "fixup",
]
