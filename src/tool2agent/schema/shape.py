"""
tool2agent — declared input/output shapes.

Purpose
- Describe the flat, named shape of a tool's input (or output) object.
- Prove that a fully assembled value matches that shape before it is accepted.
- Render the shape as JSON Schema for agent-facing tool descriptions.

Non-functional requirements
- Deterministic issue ordering (declaration order, then unknown keys sorted).
- No nested-object resolution: fields are checked by top-level type only.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Final

_JSON_TYPE_NAMES: Final[dict[type, str]] = {
    str: "string",
    bool: "boolean",
    int: "integer",
    float: "number",
    list: "array",
    tuple: "array",
    dict: "object",
    type(None): "null",
}


@dataclass(frozen=True, slots=True)
class ShapeIssue:
    """Single structured shape mismatch."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ShapeValidationResult:
    value: dict[str, object] | None
    issues: tuple[ShapeIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.value is not None and not self.issues


@dataclass(frozen=True, slots=True)
class FieldShape:
    """Type constraint for one top-level field."""

    name: str
    types: tuple[type, ...]
    required: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("FieldShape.name must be a non-empty string")
        raw_types = self.types
        if isinstance(raw_types, type):
            raw_types = (raw_types,)
        parsed = tuple(raw_types)
        if not parsed or not all(isinstance(item, type) for item in parsed):
            raise ValueError(f"FieldShape.types for {self.name!r} must be one or more types")
        object.__setattr__(self, "types", parsed)

    def accepts(self, value: object) -> bool:
        if isinstance(value, bool):
            return bool in self.types
        if isinstance(value, int) and float in self.types and int not in self.types:
            return True
        if isinstance(value, float) and not math.isfinite(value):
            return False
        return isinstance(value, self.types)

    def json_schema(self) -> dict[str, object]:
        names: list[str] = []
        for item in self.types:
            json_name = _JSON_TYPE_NAMES.get(item)
            if json_name is None:
                # Unmapped Python types carry no JSON type constraint.
                names = []
                break
            if json_name not in names:
                names.append(json_name)

        schema: dict[str, object] = {}
        if len(names) == 1:
            schema["type"] = names[0]
        elif names:
            schema["type"] = names
        if self.description:
            schema["description"] = self.description
        return schema

    def _type_label(self) -> str:
        return " | ".join(item.__name__ for item in self.types)


@dataclass(frozen=True, slots=True)
class InputShape:
    """Flat object shape: ordered field shapes plus an extra-keys policy."""

    fields: tuple[FieldShape, ...]
    allow_extra: bool = False
    _by_name: dict[str, FieldShape] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        parsed = tuple(self.fields)
        by_name: dict[str, FieldShape] = {}
        for item in parsed:
            if item.name in by_name:
                raise ValueError(f"duplicate field {item.name!r} in input shape")
            by_name[item.name] = item
        object.__setattr__(self, "fields", parsed)
        object.__setattr__(self, "_by_name", by_name)

    @classmethod
    def of(cls, allow_extra: bool = False, **types: type | tuple[type, ...]) -> InputShape:
        """Shorthand: ``InputShape.of(departure=str, passengers=int)``."""
        return cls(
            fields=tuple(FieldShape(name=name, types=kind) for name, kind in types.items()),  # type: ignore[arg-type]
            allow_extra=allow_extra,
        )

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(item.name for item in self.fields)

    def get(self, name: str) -> FieldShape | None:
        return self._by_name.get(name)

    def validate(self, payload: Mapping[str, object] | object) -> ShapeValidationResult:
        issues: list[ShapeIssue] = []
        if not isinstance(payload, Mapping):
            issues.append(ShapeIssue("<root>", f"expected object, got {type(payload).__name__}"))
            return ShapeValidationResult(value=None, issues=tuple(issues))

        for item in self.fields:
            if item.name not in payload:
                if item.required:
                    issues.append(ShapeIssue(item.name, "missing required field"))
                continue
            value = payload[item.name]
            if not item.accepts(value):
                issues.append(
                    ShapeIssue(
                        item.name,
                        f"expected {item._type_label()}, got {type(value).__name__}",
                    )
                )

        if not self.allow_extra:
            for key in sorted(str(raw_key) for raw_key in payload):
                if key not in self._by_name:
                    issues.append(ShapeIssue(key, "unknown field"))

        if issues:
            return ShapeValidationResult(value=None, issues=tuple(issues))
        return ShapeValidationResult(value=dict(payload), issues=())

    def json_schema(self) -> dict[str, object]:
        return {
            "type": "object",
            "properties": {item.name: item.json_schema() for item in self.fields},
            "required": [item.name for item in self.fields if item.required],
            "additionalProperties": self.allow_extra,
        }


def shape_from_names(names: Iterable[str]) -> dict[str, object]:
    """JSON Schema for an object whose field types are not declared."""

    ordered = list(names)
    return {
        "type": "object",
        "properties": {name: {} for name in ordered},
        "additionalProperties": False,
    }


__all__ = [
    "FieldShape",
    "InputShape",
    "ShapeIssue",
    "ShapeValidationResult",
    "shape_from_names",
]
