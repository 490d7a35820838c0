"""Unit tests for ui.render."""

from __future__ import annotations

import io

import pytest

from tool2agent.demo.airline import build_airline_spec
from tool2agent.protocol.feedback import FieldOutcome
from tool2agent.protocol.results import ToolCallAccepted, ToolCallRejected
from tool2agent.schema.shape import FieldShape
from tool2agent.ui.render import CLIRenderer, outcome_detail, outcome_status


@pytest.mark.parametrize(
    ("outcome", "status"),
    [
        (FieldOutcome.accept("x"), "valid"),
        (FieldOutcome.blocked(["departure"]), "blocked"),
        (FieldOutcome.refuse("too late", requires_valid_parameters=["date"]), "invalid"),
    ],
)
def test_outcome_status(outcome: FieldOutcome, status: str) -> None:
    assert outcome_status(outcome) == status


def test_outcome_detail_summarizes_every_hint() -> None:
    outcome = FieldOutcome.refuse(
        "no matching options",
        allowed_values=["New York"],
        dynamic_parameter_schema=FieldShape("arrival", (str,)),
    )

    assert outcome_detail(outcome) == (
        'no matching options | allowed: ["New York"] | schema: {"type": "string"}'
    )
    assert outcome_detail(FieldOutcome.blocked(["a", "b"])) == "needs a, b"


def test_evaluation_order_lists_dependencies() -> None:
    stream = io.StringIO()

    CLIRenderer(stream=stream).evaluation_order(build_airline_spec())

    lines = stream.getvalue().splitlines()
    assert lines[0] == "Tool: book_flight"
    assert "Evaluation order:" in lines
    assert lines[-1].split() == ["4", "passengers", "departure,", "arrival,", "date", "-"]


def test_rejected_result_renders_field_rows_and_reasons() -> None:
    stream = io.StringIO()
    result = ToolCallRejected(
        validation_results={
            "departure": FieldOutcome.accept("London", allowed_values=["London"]),
            "arrival": FieldOutcome.blocked(["departure"]),
        },
        rejection_reasons=("unknown parameter(s): seat",),
    )

    CLIRenderer(stream=stream).call_result(build_airline_spec(), result)

    text = stream.getvalue()
    assert "Result: rejected" in text
    assert "  - unknown parameter(s): seat" in text
    assert "arrival    blocked  needs departure" in text


def test_accepted_result_lists_values() -> None:
    stream = io.StringIO()

    CLIRenderer(stream=stream).call_result(
        build_airline_spec(), ToolCallAccepted(value={"passengers": 2})
    )

    assert stream.getvalue().splitlines() == [
        "Tool: book_flight",
        "Result: accepted",
        "  passengers: 2",
    ]
