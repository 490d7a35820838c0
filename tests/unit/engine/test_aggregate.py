"""Unit tests for engine.aggregate."""

from __future__ import annotations

from tool2agent.engine.aggregate import aggregate, apply_shape_issues
from tool2agent.engine.context import FieldContext
from tool2agent.engine.spec import FieldSpec, ToolSpec, build_spec
from tool2agent.protocol.feedback import FieldOutcome
from tool2agent.protocol.results import ToolCallAccepted, ToolCallRejected
from tool2agent.schema.shape import ShapeIssue


def _accept(value: object, context: FieldContext) -> FieldOutcome:
    return FieldOutcome.accept(value)


def _spec() -> ToolSpec:
    return build_spec(
        [
            FieldSpec(name="first", validate=_accept),
            FieldSpec(name="second", validate=_accept),
        ]
    )


def test_accepts_in_declaration_order() -> None:
    spec = _spec()
    outcomes = {"second": FieldOutcome.accept(2), "first": FieldOutcome.accept(1)}

    result = aggregate(spec, outcomes, {"second": 2, "first": 1})

    assert isinstance(result, ToolCallAccepted)
    assert list(result.value) == ["first", "second"]  # type: ignore[arg-type]


def test_top_level_reason_rejects_even_when_fields_are_valid() -> None:
    spec = _spec()
    outcomes = {"first": FieldOutcome.accept(1), "second": FieldOutcome.accept(2)}

    result = aggregate(spec, outcomes, {"first": 1, "second": 2}, rejection_reasons=["nope"])

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results == {}
    assert result.rejection_reasons == ("nope",)


def test_valid_field_with_free_form_feedback_is_reported() -> None:
    spec = _spec()
    outcomes = {
        "first": FieldOutcome.accept(1, feedback=["consider the morning flight"]),
        "second": FieldOutcome.refuse("bad"),
    }

    result = aggregate(spec, outcomes, {"first": 1})

    assert isinstance(result, ToolCallRejected)
    assert list(result.validation_results) == ["first", "second"]


def test_field_shape_issues_keep_narrowing_of_previous_outcome() -> None:
    spec = _spec()
    outcomes = {
        "first": FieldOutcome.accept("x", allowed_values=["x", "y"]),
        "second": FieldOutcome.accept(2),
    }

    updated, reasons = apply_shape_issues(
        spec,
        outcomes,
        [ShapeIssue("first", "expected int, got str"), ShapeIssue("stray", "unknown field")],
    )

    assert updated["first"] == FieldOutcome.refuse(
        "expected int, got str", allowed_values=["x", "y"]
    )
    assert updated["second"] is outcomes["second"]
    assert reasons == ("stray: unknown field",)


def test_field_shape_issues_keep_the_dynamic_parameter_schema() -> None:
    schema = {"type": "integer", "maximum": 4}
    outcomes = {
        "first": FieldOutcome.accept(9, dynamic_parameter_schema=schema),
        "second": FieldOutcome.accept(2),
    }

    updated, _ = apply_shape_issues(_spec(), outcomes, [ShapeIssue("first", "too large")])

    assert updated["first"] == FieldOutcome.refuse("too large", dynamic_parameter_schema=schema)
