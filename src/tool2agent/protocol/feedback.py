"""Per-field feedback records and their structural invariants."""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final, Literal

from tool2agent.schema.shape import FieldShape


class _AbsentType(Enum):
    ABSENT = "ABSENT"

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _AbsentType.ABSENT
"""Marker for a value the caller did not provide (distinct from ``None``)."""

Absent = Literal[_AbsentType.ABSENT]

# Python attribute name -> wire key.
_WIRE_KEYS: Final[tuple[tuple[str, str], ...]] = (
    ("normalized_value", "normalizedValue"),
    ("refusal_reasons", "refusalReasons"),
    ("requires_valid_parameters", "requiresValidParameters"),
    ("allowed_values", "allowedValues"),
    ("suggested_values", "suggestedValues"),
    ("feedback", "feedback"),
    ("instructions", "instructions"),
)
_LIST_ATTRIBUTES: Final[tuple[str, ...]] = (
    "refusal_reasons",
    "requires_valid_parameters",
    "allowed_values",
    "suggested_values",
    "feedback",
    "instructions",
)
_STRING_LIST_ATTRIBUTES: Final[tuple[str, ...]] = (
    "refusal_reasons",
    "requires_valid_parameters",
    "feedback",
    "instructions",
)


class StructuralInvariantViolation(ValueError):
    """Raised when a field outcome breaks the feedback protocol contract.

    This is a programming error in a validator, not a problem with user input.
    """

    def __init__(self, violations: Sequence[str], *, field_name: str | None = None) -> None:
        self.violations = tuple(violations)
        self.field_name = field_name
        rendered = "; ".join(self.violations) if self.violations else "unknown violation"
        prefix = f"outcome for field {field_name!r}" if field_name is not None else "outcome"
        super().__init__(f"{prefix} violates the feedback protocol: {rendered}")


@dataclass(frozen=True, slots=True)
class FieldOutcome:
    """Validation result for a single input field.

    ``allowed_values`` is exhaustive and may be empty (no option currently
    fits); ``suggested_values`` is a non-exhaustive, non-empty hint. At most
    one of the two may be present. An invalid outcome carries at least one of
    ``refusal_reasons`` or ``requires_valid_parameters``.

    ``dynamic_parameter_schema`` describes a shape the value must take that is
    only known at call time, as a ``FieldShape`` or a JSON Schema mapping.
    """

    valid: bool
    normalized_value: object = ABSENT
    refusal_reasons: tuple[str, ...] | None = None
    requires_valid_parameters: tuple[str, ...] | None = None
    allowed_values: tuple[object, ...] | None = None
    suggested_values: tuple[object, ...] | None = None
    feedback: tuple[str, ...] | None = None
    instructions: tuple[str, ...] | None = None
    dynamic_parameter_schema: FieldShape | Mapping[str, object] | None = None

    def __post_init__(self) -> None:
        for name in _LIST_ATTRIBUTES:
            value = getattr(self, name)
            if value is None or isinstance(value, (tuple, str, bytes, bytearray)):
                continue
            if isinstance(value, Sequence):
                object.__setattr__(self, name, tuple(value))

    @classmethod
    def accept(
        cls,
        normalized_value: object = ABSENT,
        *,
        allowed_values: Sequence[object] | None = None,
        suggested_values: Sequence[object] | None = None,
        feedback: Sequence[str] | None = None,
        instructions: Sequence[str] | None = None,
        dynamic_parameter_schema: FieldShape | Mapping[str, object] | None = None,
    ) -> FieldOutcome:
        return cls(
            valid=True,
            normalized_value=normalized_value,
            allowed_values=_optional_tuple(allowed_values),
            suggested_values=_optional_tuple(suggested_values),
            feedback=_optional_tuple(feedback),
            instructions=_optional_tuple(instructions),
            dynamic_parameter_schema=dynamic_parameter_schema,
        )

    @classmethod
    def refuse(
        cls,
        *reasons: str,
        requires_valid_parameters: Sequence[str] | None = None,
        allowed_values: Sequence[object] | None = None,
        suggested_values: Sequence[object] | None = None,
        feedback: Sequence[str] | None = None,
        instructions: Sequence[str] | None = None,
        dynamic_parameter_schema: FieldShape | Mapping[str, object] | None = None,
    ) -> FieldOutcome:
        return cls(
            valid=False,
            refusal_reasons=tuple(reasons) if reasons else None,
            requires_valid_parameters=_optional_tuple(requires_valid_parameters),
            allowed_values=_optional_tuple(allowed_values),
            suggested_values=_optional_tuple(suggested_values),
            feedback=_optional_tuple(feedback),
            instructions=_optional_tuple(instructions),
            dynamic_parameter_schema=dynamic_parameter_schema,
        )

    @classmethod
    def blocked(cls, unmet: Sequence[str]) -> FieldOutcome:
        """Outcome for a field whose hard dependencies are not all valid yet."""
        return cls(valid=False, requires_valid_parameters=tuple(unmet))

    @property
    def is_blocked(self) -> bool:
        return (
            not self.valid
            and bool(self.requires_valid_parameters)
            and not self.refusal_reasons
        )

    @property
    def has_narrowing(self) -> bool:
        return (
            self.allowed_values is not None
            or self.suggested_values is not None
            or self.dynamic_parameter_schema is not None
        )

    @property
    def has_free_form_feedback(self) -> bool:
        return bool(self.feedback) or bool(self.instructions)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"valid": self.valid}
        for attribute, wire_key in _WIRE_KEYS:
            value = getattr(self, attribute)
            if value is None or value is ABSENT:
                continue
            payload[wire_key] = list(value) if isinstance(value, tuple) else value
        schema = self.dynamic_parameter_schema
        if isinstance(schema, FieldShape):
            payload["dynamicParameterSchema"] = schema.json_schema()
        elif schema is not None:
            payload["dynamicParameterSchema"] = dict(schema)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> FieldOutcome:
        """Parse the wire form; unknown keys or malformed lists are violations."""

        violations: list[str] = []
        known = {wire_key: attribute for attribute, wire_key in _WIRE_KEYS}
        for key in sorted(str(item) for item in payload):
            if key not in ("valid", "dynamicParameterSchema") and key not in known:
                violations.append(f"unknown key {key!r}")

        if "valid" not in payload:
            violations.append("missing required key 'valid'")

        kwargs: dict[str, object] = {}
        if "dynamicParameterSchema" in payload:
            schema = payload["dynamicParameterSchema"]
            if isinstance(schema, Mapping):
                kwargs["dynamic_parameter_schema"] = dict(schema)
            else:
                violations.append(
                    f"dynamicParameterSchema must be an object, got {type(schema).__name__}"
                )
        for wire_key, attribute in known.items():
            if wire_key not in payload:
                continue
            value = payload[wire_key]
            if attribute == "normalized_value":
                kwargs[attribute] = value
                continue
            if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
                violations.append(f"{wire_key} must be a list, got {type(value).__name__}")
                continue
            kwargs[attribute] = tuple(value)

        if violations:
            raise StructuralInvariantViolation(violations)
        return cls(valid=payload["valid"], **kwargs)  # type: ignore[arg-type]


def outcome_violations(
    outcome: FieldOutcome,
    *,
    field_names: Collection[str] | None = None,
) -> tuple[str, ...]:
    """Return every structural invariant the outcome breaks (empty when sound)."""

    violations: list[str] = []
    if not isinstance(outcome.valid, bool):
        violations.append(f"valid must be a boolean, got {type(outcome.valid).__name__}")

    for attribute in _LIST_ATTRIBUTES:
        value = getattr(outcome, attribute)
        if value is None:
            continue
        if not isinstance(value, tuple):
            violations.append(f"{attribute} must be a list, got {type(value).__name__}")
            continue
        if attribute != "allowed_values" and not value:
            violations.append(f"{attribute} must not be empty when present")
        if attribute in _STRING_LIST_ATTRIBUTES and not all(isinstance(v, str) for v in value):
            violations.append(f"{attribute} must contain only strings")

    schema = outcome.dynamic_parameter_schema
    if schema is not None and not isinstance(schema, (FieldShape, Mapping)):
        violations.append(
            "dynamic_parameter_schema must be a FieldShape or a mapping, "
            f"got {type(schema).__name__}"
        )

    if outcome.allowed_values is not None and outcome.suggested_values is not None:
        violations.append("allowed_values and suggested_values are mutually exclusive")

    if outcome.valid is False and not outcome.refusal_reasons and not (
        outcome.requires_valid_parameters
    ):
        violations.append(
            "invalid outcome must carry refusal_reasons or requires_valid_parameters"
        )

    if outcome.valid is True:
        carried = [
            attribute
            for attribute in ("refusal_reasons", "requires_valid_parameters")
            if getattr(outcome, attribute) is not None
        ]
        if carried:
            violations.append(f"valid outcome must not carry {' or '.join(carried)}")

    if (
        field_names is not None
        and isinstance(outcome.requires_valid_parameters, tuple)
        and outcome.requires_valid_parameters
    ):
        unknown = [
            name
            for name in outcome.requires_valid_parameters
            if not isinstance(name, str) or name not in field_names
        ]
        if unknown:
            rendered = ", ".join(repr(name) for name in unknown)
            violations.append(f"requires_valid_parameters names undeclared field(s): {rendered}")

    return tuple(violations)


def _optional_tuple(values: Sequence[object] | None) -> tuple[object, ...] | None:
    if values is None:
        return None
    return tuple(values)


__all__ = [
    "ABSENT",
    "Absent",
    "FieldOutcome",
    "StructuralInvariantViolation",
    "outcome_violations",
]
