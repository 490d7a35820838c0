"""Unit tests for schema.shape."""

from __future__ import annotations

import pytest

from tool2agent.schema.shape import (
    FieldShape,
    InputShape,
    ShapeIssue,
    shape_from_names,
)


def test_valid_payload_passes_and_is_copied() -> None:
    shape = InputShape.of(departure=str, passengers=int)
    payload = {"departure": "London", "passengers": 2}

    result = shape.validate(payload)

    assert result.is_valid
    assert result.value == payload
    assert result.value is not payload


def test_issues_follow_declaration_order_then_sorted_unknown_keys() -> None:
    shape = InputShape.of(departure=str, passengers=int)

    result = shape.validate({"zeta": 1, "passengers": "2", "alpha": 0})

    assert not result.is_valid
    assert result.issues == (
        ShapeIssue("departure", "missing required field"),
        ShapeIssue("passengers", "expected int, got str"),
        ShapeIssue("alpha", "unknown field"),
        ShapeIssue("zeta", "unknown field"),
    )


def test_bool_is_never_an_integer() -> None:
    shape = InputShape.of(passengers=int)

    result = shape.validate({"passengers": True})

    assert result.issues == (ShapeIssue("passengers", "expected int, got bool"),)


def test_int_is_accepted_for_float_but_not_nan() -> None:
    field = FieldShape("price", float)

    assert field.accepts(3)
    assert field.accepts(3.5)
    assert not field.accepts(float("nan"))
    assert not field.accepts(False)


def test_optional_fields_and_extra_keys() -> None:
    shape = InputShape(
        fields=(FieldShape("note", (str,), required=False),),
        allow_extra=True,
    )

    assert shape.validate({"other": 1}).is_valid


def test_non_mapping_is_reported_at_root() -> None:
    result = InputShape.of(a=str).validate(["a"])

    assert result.value is None
    assert result.issues == (ShapeIssue("<root>", "expected object, got list"),)


def test_union_types_render_in_issue_label() -> None:
    shape = InputShape.of(when=(str, int))

    result = shape.validate({"when": 1.5})

    assert result.issues == (ShapeIssue("when", "expected str | int, got float"),)


def test_json_schema_rendering() -> None:
    shape = InputShape(
        fields=(
            FieldShape("departure", str, description="City the flight leaves from"),
            FieldShape("passengers", (int,)),
            FieldShape("note", (str, type(None)), required=False),
        )
    )

    assert shape.json_schema() == {
        "type": "object",
        "properties": {
            "departure": {"type": "string", "description": "City the flight leaves from"},
            "passengers": {"type": "integer"},
            "note": {"type": ["string", "null"]},
        },
        "required": ["departure", "passengers"],
        "additionalProperties": False,
    }


def test_shape_from_names_leaves_types_open() -> None:
    assert shape_from_names(["a", "b"]) == {
        "type": "object",
        "properties": {"a": {}, "b": {}},
        "additionalProperties": False,
    }


@pytest.mark.parametrize(
    "build",
    [
        lambda: FieldShape("", (str,)),
        lambda: FieldShape("a", ()),
        lambda: InputShape(fields=(FieldShape("a", str), FieldShape("a", int))),
    ],
)
def test_malformed_shapes_are_rejected(build: object) -> None:
    with pytest.raises(ValueError):
        build()  # type: ignore[operator]
