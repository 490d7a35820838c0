"""Unit tests for engine.fixup: the ordered walk, failure handling and aggregation."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping

import pytest
from structlog.testing import capture_logs

from tool2agent.engine.context import FieldContext
from tool2agent.engine.fixup import GENERIC_REFUSAL, NON_OBJECT_REASON, fixup
from tool2agent.engine.settings import FixupSettings, UnknownFieldPolicy
from tool2agent.engine.spec import FieldSpec, ToolSpec, build_spec
from tool2agent.protocol.feedback import ABSENT, FieldOutcome, StructuralInvariantViolation
from tool2agent.protocol.results import ToolCallAccepted, ToolCallRejected
from tool2agent.schema.shape import InputShape
from tool2agent.utils.concurrency import CancellationToken


def _accept(value: object, context: FieldContext) -> FieldOutcome:
    return FieldOutcome.accept(value)


def _require_text(value: object, context: FieldContext) -> FieldOutcome:
    if isinstance(value, str) and value:
        return FieldOutcome.accept(value)
    return FieldOutcome.refuse("must be a non-empty string")


def _chain_spec(**kwargs: object) -> ToolSpec:
    return build_spec(
        [
            FieldSpec(name="a", validate=_require_text),
            FieldSpec(name="b", validate=_require_text, requires=("a",)),
            FieldSpec(name="c", validate=_require_text, requires=("a", "b")),
        ],
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_all_valid_input_is_accepted_with_normalized_values() -> None:
    def upper(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.accept(str(value).upper())

    spec = build_spec(
        [
            FieldSpec(name="code", validate=upper),
            FieldSpec(name="note", validate=_accept),
        ]
    )

    result = await fixup(spec, {"code": "lhr", "note": "window seat"})

    assert isinstance(result, ToolCallAccepted)
    assert result.value == {"code": "LHR", "note": "window seat"}


@pytest.mark.asyncio
async def test_unmet_requirements_block_without_invoking_the_validator() -> None:
    calls: list[str] = []

    def tracked(value: object, context: FieldContext) -> FieldOutcome:
        calls.append("b")
        return FieldOutcome.accept(value)

    spec = build_spec(
        [
            FieldSpec(name="a", validate=_require_text),
            FieldSpec(name="b", validate=tracked, requires=("a",)),
        ]
    )

    result = await fixup(spec, {"b": "value"})

    assert calls == []
    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == ("must be a non-empty string",)
    blocked = result.validation_results["b"]
    assert blocked.is_blocked
    assert blocked.requires_valid_parameters == ("a",)


@pytest.mark.asyncio
async def test_blocked_lists_only_unmet_direct_requirements() -> None:
    result = await fixup(_chain_spec(), {"a": "ok"})

    assert isinstance(result, ToolCallRejected)
    assert list(result.validation_results) == ["b", "c"]
    assert result.validation_results["b"].refusal_reasons == ("must be a non-empty string",)
    assert result.validation_results["c"].requires_valid_parameters == ("b",)


@pytest.mark.asyncio
async def test_missing_value_reaches_validator_as_absent() -> None:
    seen: list[object] = []

    def record(value: object, context: FieldContext) -> FieldOutcome:
        seen.append(value)
        return FieldOutcome.accept()

    spec = build_spec([FieldSpec(name="optional", validate=record)])

    result = await fixup(spec, {})

    assert seen == [ABSENT]
    assert isinstance(result, ToolCallAccepted)
    assert result.value == {}


@pytest.mark.asyncio
async def test_raw_value_is_used_when_normalized_value_is_omitted() -> None:
    def bare_accept(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.accept()

    seen: dict[str, object] = {}

    def read_dependency(value: object, context: FieldContext) -> FieldOutcome:
        seen.update(context)
        return FieldOutcome.accept(value)

    spec = build_spec(
        [
            FieldSpec(name="a", validate=bare_accept),
            FieldSpec(name="b", validate=read_dependency, requires=("a",)),
        ]
    )

    result = await fixup(spec, {"a": 7, "b": 8})

    assert seen == {"a": 7}
    assert isinstance(result, ToolCallAccepted)
    assert result.value == {"a": 7, "b": 8}


@pytest.mark.asyncio
async def test_async_validators_are_awaited() -> None:
    async def slow_accept(value: object, context: FieldContext) -> FieldOutcome:
        await asyncio.sleep(0)
        return FieldOutcome.accept(value)

    spec = build_spec([FieldSpec(name="a", validate=slow_accept)])

    result = await fixup(spec, {"a": 1})

    assert result == ToolCallAccepted(value={"a": 1})


@pytest.mark.asyncio
async def test_influencer_is_visible_only_when_already_valid() -> None:
    seen: dict[str, object] = {}

    def watch(value: object, context: FieldContext) -> FieldOutcome:
        seen[context.field_name] = context.get("hint")
        return FieldOutcome.accept(value)

    early = build_spec(
        [
            FieldSpec(name="target", validate=watch, influenced_by=("hint",)),
            FieldSpec(name="hint", validate=_accept),
        ]
    )
    late = build_spec(
        [
            FieldSpec(name="hint", validate=_accept),
            FieldSpec(name="target", validate=watch, influenced_by=("hint",)),
        ]
    )

    await fixup(early, {"target": 1, "hint": "x"})
    assert seen["target"] is ABSENT

    await fixup(late, {"target": 1, "hint": "x"})
    assert seen["target"] == "x"


@pytest.mark.asyncio
async def test_validator_exception_becomes_refusal_and_blocks_dependents() -> None:
    def explode(value: object, context: FieldContext) -> FieldOutcome:
        raise RuntimeError("schedule unavailable")

    spec = build_spec(
        [
            FieldSpec(name="a", validate=explode),
            FieldSpec(name="b", validate=_accept, requires=("a",)),
        ]
    )

    with capture_logs() as logs:
        result = await fixup(spec, {"a": "x", "b": "y"})

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == (
        "validator failed: RuntimeError: schedule unavailable",
    )
    assert result.validation_results["b"].requires_valid_parameters == ("a",)
    warnings = [entry for entry in logs if entry["event"] == "field_validator_failed"]
    assert warnings[0]["log_level"] == "warning"
    assert warnings[0]["field"] == "a"


@pytest.mark.asyncio
async def test_exception_without_message_renders_type_only() -> None:
    async def explode(value: object, context: FieldContext) -> FieldOutcome:
        raise LookupError

    spec = build_spec([FieldSpec(name="a", validate=explode)])

    result = await fixup(spec, {"a": 1})

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == ("validator failed: LookupError",)


@pytest.mark.asyncio
async def test_reading_outside_scope_fails_only_that_field() -> None:
    def nosy(value: object, context: FieldContext) -> FieldOutcome:
        context.get("a")
        return FieldOutcome.accept(value)

    spec = build_spec(
        [
            FieldSpec(name="a", validate=_accept),
            FieldSpec(name="b", validate=nosy),
        ]
    )

    result = await fixup(spec, {"a": 1, "b": 2})

    assert isinstance(result, ToolCallRejected)
    assert list(result.validation_results) == ["b"]
    (reason,) = result.validation_results["b"].refusal_reasons or ()
    assert reason.startswith("validator failed: ContextScopeError: field 'b' may not read 'a'")


@pytest.mark.asyncio
async def test_slow_validator_times_out_as_refusal() -> None:
    async def stall(value: object, context: FieldContext) -> FieldOutcome:
        await asyncio.sleep(5)
        return FieldOutcome.accept(value)

    spec = build_spec([FieldSpec(name="a", validate=stall)])

    result = await fixup(
        spec, {"a": 1}, settings=FixupSettings(validator_timeout_seconds=0.01)
    )

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == (
        "validation timed out after 0.01s",
    )


@pytest.mark.asyncio
async def test_cancelled_token_aborts_before_the_walk() -> None:
    token = CancellationToken()
    token.cancel("caller gave up")

    with pytest.raises(asyncio.CancelledError):
        await fixup(_chain_spec(), {"a": "x"}, cancel_token=token)


@pytest.mark.asyncio
async def test_cancellation_between_fields_stops_the_walk() -> None:
    calls: list[str] = []

    def cancel_after(value: object, context: FieldContext) -> FieldOutcome:
        calls.append(context.field_name)
        context.cancel_token.cancel()
        return FieldOutcome.accept(value)

    def never(value: object, context: FieldContext) -> FieldOutcome:
        calls.append(context.field_name)
        return FieldOutcome.accept(value)

    spec = build_spec(
        [
            FieldSpec(name="a", validate=cancel_after),
            FieldSpec(name="b", validate=never),
        ]
    )

    with pytest.raises(asyncio.CancelledError):
        await fixup(spec, {"a": 1, "b": 2}, cancel_token=CancellationToken())
    assert calls == ["a"]


@pytest.mark.asyncio
async def test_cancellation_interrupts_a_running_async_validator() -> None:
    async def cancel_then_wait(value: object, context: FieldContext) -> FieldOutcome:
        context.cancel_token.cancel()
        await asyncio.sleep(5)
        return FieldOutcome.accept(value)

    spec = build_spec([FieldSpec(name="a", validate=cancel_then_wait)])

    with pytest.raises(asyncio.CancelledError):
        await fixup(spec, {"a": 1}, cancel_token=CancellationToken())


@pytest.mark.asyncio
async def test_malformed_outcome_is_replaced_by_generic_refusal() -> None:
    def broken(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome(valid=False)

    spec = build_spec([FieldSpec(name="a", validate=broken)])

    with capture_logs() as logs:
        result = await fixup(spec, {"a": 1})

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == (GENERIC_REFUSAL,)
    errors = [entry for entry in logs if entry["event"] == "field_outcome_invalid"]
    assert errors[0]["log_level"] == "error"
    assert errors[0]["strict"] is False


@pytest.mark.asyncio
async def test_malformed_outcome_raises_in_strict_mode() -> None:
    def broken(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.accept(value, allowed_values=[1], suggested_values=[2])

    spec = build_spec([FieldSpec(name="a", validate=broken)])

    with pytest.raises(StructuralInvariantViolation) as exc_info:
        await fixup(spec, {"a": 1}, settings=FixupSettings(strict_outcomes=True))

    assert exc_info.value.field_name == "a"
    assert exc_info.value.violations == (
        "allowed_values and suggested_values are mutually exclusive",
    )


@pytest.mark.asyncio
async def test_valid_outcome_with_refusal_reasons_never_reaches_the_wire() -> None:
    def contradictory(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome(valid=True, refusal_reasons=("nope",), allowed_values=("x",))

    spec = build_spec([FieldSpec(name="a", validate=contradictory)])

    lenient = await fixup(spec, {"a": "x"})

    assert isinstance(lenient, ToolCallRejected)
    assert lenient.to_dict()["validationResults"] == {
        "a": {"valid": False, "refusalReasons": [GENERIC_REFUSAL]}
    }
    with pytest.raises(StructuralInvariantViolation) as exc_info:
        await fixup(spec, {"a": "x"}, settings=FixupSettings(strict_outcomes=True))
    assert exc_info.value.violations == ("valid outcome must not carry refusal_reasons",)


@pytest.mark.asyncio
async def test_blocking_on_an_undeclared_field_is_a_violation() -> None:
    def confused(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.blocked(["nowhere"])

    spec = build_spec([FieldSpec(name="a", validate=confused)])

    with pytest.raises(StructuralInvariantViolation):
        await fixup(spec, {"a": 1}, settings=FixupSettings(strict_outcomes=True))


@pytest.mark.asyncio
async def test_wire_form_outcomes_are_accepted_from_validators() -> None:
    def wire(value: object, context: FieldContext) -> Mapping[str, object]:
        if value == "ok":
            return {"valid": True, "normalizedValue": "OK"}
        return {"valid": False, "refusalReasons": ["say ok"], "allowedValues": ["ok"]}

    spec = build_spec([FieldSpec(name="a", validate=wire)])

    accepted = await fixup(spec, {"a": "ok"})
    rejected = await fixup(spec, {"a": "nope"})

    assert accepted == ToolCallAccepted(value={"a": "OK"})
    assert rejected.to_dict() == {
        "ok": False,
        "validationResults": {
            "a": {"valid": False, "refusalReasons": ["say ok"], "allowedValues": ["ok"]}
        },
    }


@pytest.mark.asyncio
async def test_wire_form_with_unknown_keys_is_a_violation() -> None:
    def typo(value: object, context: FieldContext) -> Mapping[str, object]:
        return {"valid": True, "allowed": ["x"]}

    spec = build_spec([FieldSpec(name="a", validate=typo)])

    lenient = await fixup(spec, {"a": 1})
    assert isinstance(lenient, ToolCallRejected)
    assert lenient.validation_results["a"].refusal_reasons == (GENERIC_REFUSAL,)

    with pytest.raises(StructuralInvariantViolation) as exc_info:
        await fixup(spec, {"a": 1}, settings=FixupSettings(strict_outcomes=True))
    assert exc_info.value.violations == ("unknown key 'allowed'",)


@pytest.mark.asyncio
async def test_non_outcome_return_value_is_a_violation() -> None:
    def wrong(value: object, context: FieldContext) -> object:
        return True

    spec = build_spec([FieldSpec(name="a", validate=wrong)])  # type: ignore[arg-type]

    result = await fixup(spec, {"a": 1})

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["a"].refusal_reasons == (GENERIC_REFUSAL,)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [None, "departure=London", ["London"], 3])
async def test_non_mapping_input_is_rejected_with_top_level_reason(raw: object) -> None:
    result = await fixup(_chain_spec(), raw)

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results == {}
    assert result.rejection_reasons == (NON_OBJECT_REASON,)


@pytest.mark.asyncio
async def test_unknown_keys_are_ignored_by_default() -> None:
    result = await fixup(_chain_spec(), {"a": "x", "b": "y", "c": "z", "extra": 1})

    assert result == ToolCallAccepted(value={"a": "x", "b": "y", "c": "z"})


@pytest.mark.asyncio
async def test_unknown_keys_can_be_rejected() -> None:
    settings = FixupSettings(unknown_fields=UnknownFieldPolicy.REJECT)

    result = await fixup(
        _chain_spec(),
        {"a": "x", "b": "y", "c": "z", "zeta": 1, "alpha": 2},
        settings=settings,
    )

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results == {}
    assert result.rejection_reasons == ("unknown parameter(s): alpha, zeta",)


@pytest.mark.asyncio
async def test_valid_fields_with_narrowing_are_reported_in_rejections() -> None:
    def narrowed(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.accept(value, allowed_values=["x", "y"])

    spec = build_spec(
        [
            FieldSpec(name="a", validate=narrowed),
            FieldSpec(name="plain", validate=_accept),
            FieldSpec(name="b", validate=_require_text, requires=("a",)),
        ]
    )

    reported = await fixup(spec, {"a": "x", "plain": 1, "b": ""})
    quiet = await fixup(
        spec,
        {"a": "x", "plain": 1, "b": ""},
        settings=FixupSettings(report_valid_feedback=False),
    )

    assert isinstance(reported, ToolCallRejected)
    assert list(reported.validation_results) == ["a", "b"]
    assert reported.validation_results["a"].valid
    assert isinstance(quiet, ToolCallRejected)
    assert list(quiet.validation_results) == ["b"]


@pytest.mark.asyncio
async def test_submission_checks_add_top_level_reasons() -> None:
    def same_letters(values: Mapping[str, object]) -> list[str]:
        if values["a"] == values["b"]:
            return ["a and b must differ"]
        return []

    async def async_check(values: Mapping[str, object]) -> str | None:
        await asyncio.sleep(0)
        return None

    spec = _chain_spec(checks=(same_letters, async_check))

    accepted = await fixup(spec, {"a": "x", "b": "y", "c": "z"})
    rejected = await fixup(spec, {"a": "x", "b": "x", "c": "z"})

    assert isinstance(accepted, ToolCallAccepted)
    assert isinstance(rejected, ToolCallRejected)
    assert rejected.rejection_reasons == ("a and b must differ",)


@pytest.mark.asyncio
async def test_submission_checks_run_only_when_every_field_is_valid() -> None:
    calls: list[object] = []

    def check(values: Mapping[str, object]) -> None:
        calls.append(values)

    spec = _chain_spec(checks=(check,))

    await fixup(spec, {"a": "x"})

    assert calls == []


@pytest.mark.asyncio
async def test_failing_submission_check_becomes_a_reason() -> None:
    def broken(values: Mapping[str, object]) -> None:
        raise ValueError("bad state")

    spec = _chain_spec(checks=(broken,))

    result = await fixup(spec, {"a": "x", "b": "y", "c": "z"})

    assert isinstance(result, ToolCallRejected)
    assert result.rejection_reasons == ("submission check failed: ValueError: bad state",)


@pytest.mark.asyncio
async def test_non_iterable_check_result_becomes_a_reason() -> None:
    def returns_number(values: Mapping[str, object]) -> object:
        return 5

    spec = _chain_spec(checks=(returns_number,))

    with capture_logs() as logs:
        result = await fixup(spec, {"a": "x", "b": "y", "c": "z"})

    assert isinstance(result, ToolCallRejected)
    assert len(result.rejection_reasons) == 1
    assert result.rejection_reasons[0].startswith("submission check failed: TypeError")
    failures = [entry for entry in logs if entry["event"] == "submission_check_failed"]
    assert [entry["check"] for entry in failures] == ["returns_number"]


@pytest.mark.asyncio
async def test_check_generator_raising_midway_becomes_a_reason() -> None:
    def partial(values: Mapping[str, object]) -> Iterator[str]:
        yield "first problem"
        raise RuntimeError("boom")

    spec = _chain_spec(checks=(partial,))

    result = await fixup(spec, {"a": "x", "b": "y", "c": "z"})

    assert isinstance(result, ToolCallRejected)
    assert result.rejection_reasons == ("submission check failed: RuntimeError: boom",)


@pytest.mark.asyncio
async def test_shape_issues_become_field_refusals() -> None:
    def narrowed(value: object, context: FieldContext) -> FieldOutcome:
        return FieldOutcome.accept(value, suggested_values=[1, 2])

    spec = build_spec(
        [
            FieldSpec(name="count", validate=narrowed),
            FieldSpec(name="label", validate=lambda value, context: FieldOutcome.accept()),
        ],
        input_shape=InputShape.of(count=int, label=str),
    )

    result = await fixup(spec, {"count": "two"})

    assert isinstance(result, ToolCallRejected)
    assert result.validation_results["count"] == FieldOutcome.refuse(
        "expected int, got str", suggested_values=[1, 2]
    )
    assert result.validation_results["label"].refusal_reasons == ("missing required field",)
    assert result.rejection_reasons == ()


@pytest.mark.asyncio
async def test_repeated_calls_produce_identical_results() -> None:
    spec = _chain_spec()
    raw = {"a": "x", "b": ""}

    first = await fixup(spec, raw)
    second = await fixup(spec, raw)

    assert first.to_dict() == second.to_dict()


@pytest.mark.asyncio
async def test_decision_logs_never_carry_raw_values() -> None:
    with capture_logs() as logs:
        await fixup(_chain_spec(), {"a": "s3cr3t-value", "b": ""})

    events = [entry["event"] for entry in logs]
    assert "field_evaluated" in events
    assert "field_blocked" in events
    assert events[-1] == "fixup_completed"
    assert "s3cr3t-value" not in repr(logs)
    blocked = next(entry for entry in logs if entry["event"] == "field_blocked")
    assert blocked["field"] == "c"
    assert blocked["unmet"] == ["b"]
