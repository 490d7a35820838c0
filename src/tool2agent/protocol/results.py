"""Call-level accept/reject results of the tool feedback protocol."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from tool2agent.protocol.feedback import ABSENT, FieldOutcome, StructuralInvariantViolation


@dataclass(frozen=True, slots=True)
class ToolCallAccepted:
    """Accepted call. ``value`` is ``ABSENT`` for tools that produce no output."""

    value: object = ABSENT
    feedback: tuple[str, ...] | None = None
    instructions: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.value, Mapping):
            object.__setattr__(self, "value", dict(self.value))
        _freeze_free_form(self)

    @property
    def ok(self) -> Literal[True]:
        return True

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"ok": True}
        if self.value is not ABSENT:
            payload["value"] = self.value
        _dump_free_form(self, payload)
        return payload


@dataclass(frozen=True, slots=True)
class ToolCallRejected:
    """Rejected call; never empty (at least one field result or reason)."""

    validation_results: Mapping[str, FieldOutcome] = field(default_factory=dict)
    rejection_reasons: tuple[str, ...] = ()
    feedback: tuple[str, ...] | None = None
    instructions: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "validation_results", dict(self.validation_results))
        object.__setattr__(self, "rejection_reasons", tuple(self.rejection_reasons))
        _freeze_free_form(self)
        if not self.validation_results and not self.rejection_reasons:
            raise ValueError(
                "rejected tool call must carry at least one field result or rejection reason"
            )

    @property
    def ok(self) -> Literal[False]:
        return False

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"ok": False}
        if self.validation_results:
            payload["validationResults"] = {
                name: outcome.to_dict() for name, outcome in self.validation_results.items()
            }
        if self.rejection_reasons:
            payload["rejectionReasons"] = list(self.rejection_reasons)
        _dump_free_form(self, payload)
        return payload


ToolCallResult: TypeAlias = ToolCallAccepted | ToolCallRejected


def result_from_dict(payload: Mapping[str, object]) -> ToolCallResult:
    """Parse a wire-form result, as returned by hand-written execute callbacks."""

    ok = payload.get("ok")
    feedback = _string_list(payload, "feedback")
    instructions = _string_list(payload, "instructions")
    if ok is True:
        return ToolCallAccepted(
            value=payload.get("value", ABSENT),
            feedback=feedback,
            instructions=instructions,
        )
    if ok is not False:
        raise ValueError("result payload must carry ok: true or ok: false")

    raw_results = payload.get("validationResults", {})
    if not isinstance(raw_results, Mapping):
        raise ValueError("validationResults must be an object")
    results: dict[str, FieldOutcome] = {}
    for name, raw_outcome in raw_results.items():
        if not isinstance(raw_outcome, Mapping):
            raise ValueError(f"validationResults.{name} must be an object")
        try:
            results[str(name)] = FieldOutcome.from_dict(raw_outcome)
        except StructuralInvariantViolation as exc:
            raise ValueError(f"validationResults.{name}: {exc}") from exc

    return ToolCallRejected(
        validation_results=results,
        rejection_reasons=_string_list(payload, "rejectionReasons") or (),
        feedback=feedback,
        instructions=instructions,
    )


def _string_list(payload: Mapping[str, object], key: str) -> tuple[str, ...] | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if isinstance(raw, str) or not isinstance(raw, Sequence):
        raise ValueError(f"{key} must be a list of strings")
    values = tuple(raw)
    if not values or not all(isinstance(item, str) for item in values):
        raise ValueError(f"{key} must be a non-empty list of strings")
    return values


def _freeze_free_form(result: ToolCallAccepted | ToolCallRejected) -> None:
    for name in ("feedback", "instructions"):
        value = getattr(result, name)
        if value is None:
            continue
        frozen = tuple(value)
        if not frozen:
            raise ValueError(f"{name} must not be empty when present")
        object.__setattr__(result, name, frozen)


def _dump_free_form(
    result: ToolCallAccepted | ToolCallRejected, payload: dict[str, object]
) -> None:
    if result.feedback:
        payload["feedback"] = list(result.feedback)
    if result.instructions:
        payload["instructions"] = list(result.instructions)


__all__ = [
    "ToolCallAccepted",
    "ToolCallRejected",
    "ToolCallResult",
    "result_from_dict",
]
