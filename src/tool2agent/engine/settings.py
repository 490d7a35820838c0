"""Typed engine settings derived from the validated ``[fixup]`` config section."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum


class UnknownFieldPolicy(StrEnum):
    """What to do with input keys that name no declared field."""

    IGNORE = "ignore"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class FixupSettings:
    strict_outcomes: bool = False
    validator_timeout_seconds: float | None = None
    unknown_fields: UnknownFieldPolicy = UnknownFieldPolicy.IGNORE
    report_valid_feedback: bool = True

    def __post_init__(self) -> None:
        timeout = self.validator_timeout_seconds
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise TypeError("validator_timeout_seconds must be a number or None")
            if timeout <= 0:
                raise ValueError("validator_timeout_seconds must be > 0")
            object.__setattr__(self, "validator_timeout_seconds", float(timeout))
        object.__setattr__(self, "unknown_fields", UnknownFieldPolicy(self.unknown_fields))

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> FixupSettings:
        """Build settings from a loaded configuration mapping (``[fixup]`` section)."""
        section = config.get("fixup", {})
        if not isinstance(section, Mapping):
            raise TypeError("config section 'fixup' must be a mapping")
        defaults = cls()
        return cls(
            strict_outcomes=bool(section.get("strict_outcomes", defaults.strict_outcomes)),
            validator_timeout_seconds=section.get(  # type: ignore[arg-type]
                "validator_timeout_seconds", defaults.validator_timeout_seconds
            ),
            unknown_fields=UnknownFieldPolicy(
                str(section.get("unknown_fields", defaults.unknown_fields.value))
            ),
            report_valid_feedback=bool(
                section.get("report_valid_feedback", defaults.report_valid_feedback)
            ),
        )


__all__ = ["FixupSettings", "UnknownFieldPolicy"]
