"""Declared input/output shapes and their JSON Schema rendering."""

from tool2agent.schema.shape import (
    FieldShape,
    InputShape,
    ShapeIssue,
    ShapeValidationResult,
    shape_from_names,
)

__all__ = [
    "FieldShape",
    "InputShape",
    "ShapeIssue",
    "ShapeValidationResult",
    "shape_from_names",
]
