"""
tool2agent — incremental, dependency-ordered validation of one tool call.

Purpose
- Walk the fields of a ``ToolSpec`` in evaluation order, invoking a field's
  validator only once every field it ``requires`` is valid.
- Collect one ``FieldOutcome`` per field and fold them into a single
  ``ToolCallAccepted`` / ``ToolCallRejected`` result.

Failure handling
- A validator that raises (or times out) is reported as a refusal of its own
  field; it never aborts the walk.
- A validator that returns a malformed outcome is a programming error: it is
  raised in strict mode and replaced by a generic refusal otherwise.
- Cancellation propagates as ``asyncio.CancelledError``; partial state is
  discarded.

Logging
- Decision events go through ``structlog``; raw input values are never logged.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Any, Final
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars

from tool2agent.engine.aggregate import aggregate, apply_shape_issues
from tool2agent.engine.context import ValidationContext
from tool2agent.engine.settings import FixupSettings, UnknownFieldPolicy
from tool2agent.engine.spec import FieldSpec, SubmissionCheck, ToolSpec
from tool2agent.protocol.feedback import (
    ABSENT,
    FieldOutcome,
    StructuralInvariantViolation,
    outcome_violations,
)
from tool2agent.protocol.results import ToolCallRejected, ToolCallResult
from tool2agent.utils.concurrency import CancellationToken, run_with_timeout

GENERIC_REFUSAL: Final = "internal validation error"
NON_OBJECT_REASON: Final = "tool input must be an object with named parameters"


class FieldValidatorFailure(Exception):
    """A validator raised or timed out; reported as a refusal of its field."""

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        self.message = message
        super().__init__(f"{field_name}: {message}")

    @classmethod
    def from_exception(cls, field_name: str, exc: BaseException) -> FieldValidatorFailure:
        detail = str(exc)
        rendered = f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
        return cls(field_name, f"validator failed: {rendered}")

    @classmethod
    def timed_out(cls, field_name: str, timeout_seconds: float) -> FieldValidatorFailure:
        return cls(field_name, f"validation timed out after {timeout_seconds:g}s")

    def to_outcome(self) -> FieldOutcome:
        return FieldOutcome.refuse(self.message)


async def fixup(
    spec: ToolSpec,
    raw: object,
    *,
    cancel_token: CancellationToken | None = None,
    settings: FixupSettings | None = None,
    logger: Any | None = None,
) -> ToolCallResult:
    """Validate ``raw`` against ``spec`` and return the aggregated result.

    Never raises for bad input. Raises ``asyncio.CancelledError`` when the
    token fires (or the task is cancelled), and ``StructuralInvariantViolation``
    only when ``settings.strict_outcomes`` is set.
    """

    effective = settings if settings is not None else FixupSettings()
    log = logger if logger is not None else structlog.get_logger(__name__)
    token = cancel_token if cancel_token is not None else CancellationToken()

    with bound_contextvars(tool=spec.name, call_id=uuid4().hex):
        if not isinstance(raw, Mapping):
            log.info("fixup_completed", ok=False, input_type=type(raw).__name__)
            return ToolCallRejected(rejection_reasons=(NON_OBJECT_REASON,))

        outcomes, context = await evaluate_fields(
            spec, raw, cancel_token=token, settings=effective, logger=log
        )
        values = context.snapshot()

        reasons: list[str] = []
        unknown = sorted(str(key) for key in raw if key not in spec)
        if unknown and effective.unknown_fields is UnknownFieldPolicy.REJECT:
            reasons.append(f"unknown parameter(s): {', '.join(unknown)}")

        if all(outcome.valid for outcome in outcomes.values()):
            for check in spec.checks:
                token.raise_if_cancelled()
                reasons.extend(await _run_check(check, values, token, effective, log))
            if spec.input_shape is not None:
                shape_result = spec.input_shape.validate(values)
                if not shape_result.is_valid:
                    outcomes, shape_reasons = apply_shape_issues(
                        spec, outcomes, shape_result.issues
                    )
                    reasons.extend(shape_reasons)

        result = aggregate(
            spec,
            outcomes,
            values,
            rejection_reasons=reasons,
            report_valid_feedback=effective.report_valid_feedback,
        )
        log.info(
            "fixup_completed",
            ok=result.ok,
            invalid_fields=[name for name in spec.field_names if not outcomes[name].valid],
            rejection_reason_count=len(reasons),
            ignored_fields=unknown if effective.unknown_fields is UnknownFieldPolicy.IGNORE else [],
        )
        return result


async def evaluate_fields(
    spec: ToolSpec,
    raw: Mapping[str, object],
    *,
    cancel_token: CancellationToken,
    settings: FixupSettings,
    logger: Any,
) -> tuple[dict[str, FieldOutcome], ValidationContext]:
    """Run the ordered walk; returns outcomes (declaration order) and the context."""

    context = ValidationContext()
    outcomes: dict[str, FieldOutcome] = {}
    declared = frozenset(spec.field_names)

    for name in spec.order:
        cancel_token.raise_if_cancelled()
        field_spec = spec.get_field(name)

        unmet = [required for required in field_spec.requires if not outcomes[required].valid]
        if unmet:
            outcomes[name] = FieldOutcome.blocked(unmet)
            logger.debug("field_blocked", field=name, unmet=unmet)
            continue

        raw_value = raw.get(name, ABSENT)
        try:
            returned = await _invoke(field_spec, raw_value, context, cancel_token, settings)
        except FieldValidatorFailure as failure:
            logger.warning("field_validator_failed", field=name, error=failure.message)
            outcomes[name] = failure.to_outcome()
            continue

        outcome = _coerce_outcome(name, returned, declared, settings, logger)
        if outcome.valid:
            normalized = outcome.normalized_value
            context.record(name, raw_value if normalized is ABSENT else normalized)
        outcomes[name] = outcome
        logger.debug("field_evaluated", field=name, valid=outcome.valid)

    return {name: outcomes[name] for name in spec.field_names}, context


async def _invoke(
    field_spec: FieldSpec,
    raw_value: object,
    context: ValidationContext,
    token: CancellationToken,
    settings: FixupSettings,
) -> object:
    view = context.view(field_spec, token)
    try:
        returned = field_spec.validate(raw_value, view)
    except Exception as exc:
        raise FieldValidatorFailure.from_exception(field_spec.name, exc) from exc

    if not inspect.isawaitable(returned):
        return returned

    timeout = settings.validator_timeout_seconds
    try:
        return await run_with_timeout(returned, timeout, token)
    except TimeoutError as exc:
        if timeout is None:
            raise FieldValidatorFailure.from_exception(field_spec.name, exc) from exc
        raise FieldValidatorFailure.timed_out(field_spec.name, timeout) from exc
    except Exception as exc:
        raise FieldValidatorFailure.from_exception(field_spec.name, exc) from exc


def _coerce_outcome(
    name: str,
    returned: object,
    declared: frozenset[str],
    settings: FixupSettings,
    logger: Any,
) -> FieldOutcome:
    outcome: FieldOutcome | None = None
    violations: tuple[str, ...]
    if isinstance(returned, FieldOutcome):
        outcome = returned
    elif isinstance(returned, Mapping):
        try:
            outcome = FieldOutcome.from_dict(returned)
        except StructuralInvariantViolation as exc:
            violations = exc.violations
    else:
        violations = (
            f"validator returned {type(returned).__name__}, expected FieldOutcome or mapping",
        )

    if outcome is not None:
        violations = outcome_violations(outcome, field_names=declared)
        if not violations:
            return outcome

    logger.error(
        "field_outcome_invalid",
        field=name,
        violations=list(violations),
        strict=settings.strict_outcomes,
    )
    if settings.strict_outcomes:
        raise StructuralInvariantViolation(violations, field_name=name)
    return FieldOutcome.refuse(GENERIC_REFUSAL)


async def _run_check(
    check: SubmissionCheck,
    values: Mapping[str, object],
    token: CancellationToken,
    settings: FixupSettings,
    logger: Any,
) -> list[str]:
    check_name = getattr(check, "__name__", type(check).__name__)
    try:
        returned = check(dict(values))
        if inspect.isawaitable(returned):
            returned = await run_with_timeout(returned, settings.validator_timeout_seconds, token)
        if returned is None:
            return []
        if isinstance(returned, str):
            return [returned]
        return [str(reason) for reason in returned]
    except Exception as exc:
        logger.warning("submission_check_failed", check=check_name, error=type(exc).__name__)
        detail = str(exc)
        rendered = f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
        return [f"submission check failed: {rendered}"]


__all__ = [
    "FieldValidatorFailure",
    "GENERIC_REFUSAL",
    "NON_OBJECT_REASON",
    "evaluate_fields",
    "fixup",
]
