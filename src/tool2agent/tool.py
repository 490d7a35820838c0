"""Tool boundary: validate with ``fixup``, then run the execute callback."""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

import structlog

from tool2agent.engine.fixup import fixup
from tool2agent.engine.settings import FixupSettings
from tool2agent.engine.spec import ToolSpec
from tool2agent.protocol.feedback import ABSENT
from tool2agent.protocol.results import (
    ToolCallAccepted,
    ToolCallRejected,
    ToolCallResult,
    result_from_dict,
)
from tool2agent.schema.shape import shape_from_names
from tool2agent.utils.concurrency import CancellationToken

Execute: TypeAlias = Callable[[dict[str, object]], Awaitable[ToolCallResult]]
Middleware: TypeAlias = Callable[[Execute], Execute]

_logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Tool:
    """A named tool: its field spec plus the callback run on accepted input.

    ``execute`` may be sync or async and may return a ``ToolCallResult``, the
    wire form of one (a mapping with ``ok``), ``None`` (accepted, no output)
    or any other value (accepted with that value).
    """

    name: str
    spec: ToolSpec
    execute: Callable[[dict[str, object]], object]
    description: str = ""
    settings: FixupSettings = field(default_factory=FixupSettings)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool.name must be non-empty")
        if not callable(self.execute):
            raise TypeError("Tool.execute must be callable")
        if not self.description and self.spec.description:
            object.__setattr__(self, "description", self.spec.description)

    async def call(
        self,
        raw: object,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> ToolCallResult:
        result = await fixup(
            self.spec,
            raw,
            cancel_token=cancel_token,
            settings=self.settings,
        )
        if isinstance(result, ToolCallRejected):
            return result
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        value = result.value if isinstance(result.value, dict) else {}
        returned = await _as_execute(self.execute)(dict(value))
        _logger.info("tool_executed", tool=self.name, ok=returned.ok)
        return returned

    def with_middleware(self, *middleware: Middleware) -> Tool:
        """Wrap ``execute``; the first middleware listed is the outermost."""
        wrapped: Execute = _as_execute(self.execute)
        for layer in reversed(middleware):
            wrapped = layer(wrapped)
        return dataclasses.replace(self, execute=wrapped)

    def with_settings(self, settings: FixupSettings) -> Tool:
        return dataclasses.replace(self, settings=settings)

    def describe(self) -> dict[str, Any]:
        """Agent-facing description: parameters schema plus a field guide."""
        spec = self.spec
        parameters = (
            spec.input_shape.json_schema()
            if spec.input_shape is not None
            else shape_from_names(spec.field_names)
        )

        fields: list[dict[str, object]] = []
        guide: list[str] = []
        for name in spec.order:
            field_spec = spec.get_field(name)
            fields.append(
                {
                    "name": name,
                    "description": field_spec.description,
                    "requires": list(field_spec.requires),
                    "influenced_by": list(field_spec.influenced_by),
                }
            )
            hints: list[str] = []
            if field_spec.requires:
                hints.append("requires " + ", ".join(field_spec.requires))
            if field_spec.influenced_by:
                hints.append("influenced by " + ", ".join(field_spec.influenced_by))
            line = f"- {name}"
            if hints:
                line += f" ({'; '.join(hints)})"
            if field_spec.description:
                line += f": {field_spec.description}"
            guide.append(line)

        return {
            "name": self.name,
            "description": self.description,
            "parameters": parameters,
            "fields": fields,
            "guide": "\n".join(guide),
        }


def coerce_result(returned: object) -> ToolCallResult:
    """Normalize whatever an execute callback returned into a ``ToolCallResult``."""
    if isinstance(returned, (ToolCallAccepted, ToolCallRejected)):
        return returned
    if isinstance(returned, Mapping) and isinstance(returned.get("ok"), bool):
        return result_from_dict(returned)
    if returned is None:
        return ToolCallAccepted(value=ABSENT)
    return ToolCallAccepted(value=returned)


def _as_execute(callback: Callable[[dict[str, object]], object]) -> Execute:
    async def execute(value: dict[str, object]) -> ToolCallResult:
        returned = callback(value)
        if inspect.isawaitable(returned):
            returned = await returned
        return coerce_result(returned)

    return execute


__all__ = ["Execute", "Middleware", "Tool", "coerce_result"]
