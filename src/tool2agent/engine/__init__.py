"""Dependency-ordered incremental field validation engine."""

from tool2agent.engine.aggregate import aggregate, apply_shape_issues
from tool2agent.engine.context import ContextScopeError, FieldContext, ValidationContext
from tool2agent.engine.fixup import (
    GENERIC_REFUSAL,
    NON_OBJECT_REASON,
    FieldValidatorFailure,
    evaluate_fields,
    fixup,
)
from tool2agent.engine.graph import CycleError, DanglingReferenceError, DependencyGraph, SpecError
from tool2agent.engine.settings import FixupSettings, UnknownFieldPolicy
from tool2agent.engine.spec import (
    DuplicateFieldError,
    FieldSpec,
    ShapeMismatchError,
    SubmissionCheck,
    ToolSpec,
    ToolSpecBuilder,
    Validator,
    build_spec,
    compute_order,
)

__all__ = [
    "GENERIC_REFUSAL",
    "NON_OBJECT_REASON",
    "ContextScopeError",
    "CycleError",
    "DanglingReferenceError",
    "DependencyGraph",
    "DuplicateFieldError",
    "FieldContext",
    "FieldSpec",
    "FieldValidatorFailure",
    "FixupSettings",
    "ShapeMismatchError",
    "SpecError",
    "SubmissionCheck",
    "ToolSpec",
    "ToolSpecBuilder",
    "UnknownFieldPolicy",
    "ValidationContext",
    "Validator",
    "aggregate",
    "apply_shape_issues",
    "build_spec",
    "compute_order",
    "evaluate_fields",
    "fixup",
]
