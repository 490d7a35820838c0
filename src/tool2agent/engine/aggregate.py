"""Fold per-field outcomes into one accept/reject result."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from tool2agent.engine.spec import ToolSpec
from tool2agent.protocol.feedback import ABSENT, FieldOutcome
from tool2agent.protocol.results import ToolCallAccepted, ToolCallRejected, ToolCallResult
from tool2agent.schema.shape import ShapeIssue


def aggregate(
    spec: ToolSpec,
    outcomes: Mapping[str, FieldOutcome],
    values: Mapping[str, object],
    *,
    rejection_reasons: Sequence[str] = (),
    report_valid_feedback: bool = True,
) -> ToolCallResult:
    """Accept when every field is valid and no top-level reason was raised.

    ``values`` holds the normalized value of each valid field. A rejection
    lists every invalid field, plus valid fields whose outcome narrows the
    options or carries feedback when ``report_valid_feedback`` is set.
    """

    all_valid = all(outcomes[name].valid for name in spec.field_names)
    if all_valid and not rejection_reasons:
        return ToolCallAccepted(
            value={
                name: values[name]
                for name in spec.field_names
                if values.get(name, ABSENT) is not ABSENT
            }
        )

    reported: dict[str, FieldOutcome] = {}
    for name in spec.field_names:
        outcome = outcomes[name]
        if not outcome.valid:
            reported[name] = outcome
        elif report_valid_feedback and (outcome.has_narrowing or outcome.has_free_form_feedback):
            reported[name] = outcome

    return ToolCallRejected(
        validation_results=reported,
        rejection_reasons=tuple(rejection_reasons),
    )


def apply_shape_issues(
    spec: ToolSpec,
    outcomes: Mapping[str, FieldOutcome],
    issues: Iterable[ShapeIssue],
) -> tuple[dict[str, FieldOutcome], tuple[str, ...]]:
    """Turn shape issues into field refusals; issues naming no field stay top-level."""

    updated = dict(outcomes)
    per_field: dict[str, list[str]] = {}
    top_level: list[str] = []
    for issue in issues:
        if issue.path in spec:
            per_field.setdefault(issue.path, []).append(issue.message)
        else:
            top_level.append(f"{issue.path}: {issue.message}")

    for name, messages in per_field.items():
        previous = updated[name]
        updated[name] = FieldOutcome.refuse(
            *messages,
            allowed_values=previous.allowed_values,
            suggested_values=previous.suggested_values,
            dynamic_parameter_schema=previous.dynamic_parameter_schema,
        )
    return updated, tuple(top_level)


__all__ = ["aggregate", "apply_shape_issues"]
