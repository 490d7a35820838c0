"""JSON Schema for the accepted/rejected tool-call protocol."""

from __future__ import annotations

from typing import Final

from tool2agent.schema.shape import InputShape

_STRING_LIST: Final[dict[str, object]] = {
    "type": "array",
    "items": {"type": "string"},
    "minItems": 1,
}


def field_outcome_schema(field_names: tuple[str, ...] | None = None) -> dict[str, object]:
    """Schema of one ``FieldOutcome`` in wire form."""

    required_names: dict[str, object] = {"type": "string"}
    if field_names:
        required_names = {"enum": list(field_names)}

    return {
        "type": "object",
        "properties": {
            "valid": {"type": "boolean"},
            "normalizedValue": {},
            "refusalReasons": dict(_STRING_LIST),
            "requiresValidParameters": {
                "type": "array",
                "items": required_names,
                "minItems": 1,
            },
            "allowedValues": {"type": "array"},
            "suggestedValues": {"type": "array", "minItems": 1},
            "feedback": dict(_STRING_LIST),
            "instructions": dict(_STRING_LIST),
            "dynamicParameterSchema": {"type": "object"},
        },
        "required": ["valid"],
        "additionalProperties": False,
        "not": {"required": ["allowedValues", "suggestedValues"]},
        "if": {"properties": {"valid": {"const": False}}},
        "then": {
            "anyOf": [
                {"required": ["refusalReasons"]},
                {"required": ["requiresValidParameters"]},
            ]
        },
        "else": {
            "not": {
                "anyOf": [
                    {"required": ["refusalReasons"]},
                    {"required": ["requiresValidParameters"]},
                ]
            }
        },
    }


def tool_call_result_schema(
    input_shape: InputShape | None = None,
    output_shape: InputShape | None = None,
    *,
    field_names: tuple[str, ...] | None = None,
) -> dict[str, object]:
    """Schema of ``ToolCallAccepted | ToolCallRejected`` for one tool.

    ``field_names`` defaults to the input shape's names; when neither is
    known, ``validationResults`` accepts any field name.
    """

    if field_names is None and input_shape is not None:
        field_names = input_shape.field_names

    outcome = field_outcome_schema(field_names)
    if field_names:
        validation_results: dict[str, object] = {
            "type": "object",
            "properties": {name: outcome for name in field_names},
            "additionalProperties": False,
            "minProperties": 1,
        }
    else:
        validation_results = {
            "type": "object",
            "additionalProperties": outcome,
            "minProperties": 1,
        }

    accepted_properties: dict[str, object] = {
        "ok": {"const": True},
        "feedback": dict(_STRING_LIST),
        "instructions": dict(_STRING_LIST),
    }
    if output_shape is not None:
        accepted_properties["value"] = output_shape.json_schema()
    else:
        accepted_properties["value"] = {}

    accepted = {
        "type": "object",
        "properties": accepted_properties,
        "required": ["ok"],
        "additionalProperties": False,
    }
    rejected = {
        "type": "object",
        "properties": {
            "ok": {"const": False},
            "validationResults": validation_results,
            "rejectionReasons": dict(_STRING_LIST),
            "feedback": dict(_STRING_LIST),
            "instructions": dict(_STRING_LIST),
        },
        "required": ["ok"],
        "additionalProperties": False,
        "anyOf": [
            {"required": ["validationResults"]},
            {"required": ["rejectionReasons"]},
        ],
    }
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "oneOf": [accepted, rejected],
    }


__all__ = ["field_outcome_schema", "tool_call_result_schema"]
