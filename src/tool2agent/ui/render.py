"""Plain-text rendering of specs, call results and reports for the CLI.

Output is deterministic plain text so it can be asserted in tests; machine
readable output goes through ``--json`` instead.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, TextIO

from tool2agent.protocol.feedback import FieldOutcome
from tool2agent.protocol.results import ToolCallRejected
from tool2agent.schema.shape import FieldShape

if TYPE_CHECKING:
    from tool2agent.engine.spec import ToolSpec
    from tool2agent.protocol.results import ToolCallResult


def outcome_status(outcome: FieldOutcome) -> str:
    if outcome.valid:
        return "valid"
    return "blocked" if outcome.is_blocked else "invalid"


def outcome_detail(outcome: FieldOutcome) -> str:
    """One-line summary of everything an outcome tells the caller."""

    parts: list[str] = []
    if outcome.refusal_reasons:
        parts.append("; ".join(outcome.refusal_reasons))
    if outcome.requires_valid_parameters:
        parts.append("needs " + ", ".join(outcome.requires_valid_parameters))
    if outcome.allowed_values is not None:
        parts.append("allowed: " + _compact(list(outcome.allowed_values)))
    if outcome.suggested_values is not None:
        parts.append("suggested: " + _compact(list(outcome.suggested_values)))
    schema = outcome.dynamic_parameter_schema
    if schema is not None:
        rendered = schema.json_schema() if isinstance(schema, FieldShape) else dict(schema)
        parts.append("schema: " + _compact(rendered))
    return " | ".join(parts)


class CLIRenderer:
    """Writes tool2agent reports as aligned plain text."""

    def __init__(self, *, verbose: bool = False, stream: TextIO | None = None) -> None:
        self.verbose = verbose
        self._stream = stream

    # Reports

    def evaluation_order(self, spec: ToolSpec) -> None:
        self._kv("Tool", spec.name)
        rows = []
        for position, name in enumerate(spec.order, start=1):
            field_spec = spec.get_field(name)
            rows.append(
                [
                    str(position),
                    name,
                    ", ".join(field_spec.requires) or "-",
                    ", ".join(field_spec.influenced_by) or "-",
                ]
            )
        self._table(["#", "field", "requires", "influenced_by"], rows, title="Evaluation order:")

    def call_result(self, spec: ToolSpec, result: ToolCallResult) -> None:
        self._kv("Tool", spec.name)
        if not isinstance(result, ToolCallRejected):
            self._kv("Result", "accepted")
            if isinstance(result.value, Mapping):
                for key, value in result.value.items():
                    self._kv(f"  {key}", json.dumps(value, ensure_ascii=False, default=str))
            self._free_form(result.feedback, result.instructions)
            return

        self._kv("Result", "rejected")
        if result.rejection_reasons:
            self._section("Rejection reasons:")
            self._items(result.rejection_reasons)

        rows = [
            [name, outcome_status(outcome), outcome_detail(outcome)]
            for name, outcome in result.validation_results.items()
        ]
        self._table(["field", "status", "feedback"], rows, title="Fields:")
        self._free_form(result.feedback, result.instructions)

    def manifest_ok(self, spec: ToolSpec) -> None:
        self._line(f"  OK  {len(spec.fields)} field(s) declared")
        self._line("  OK  no dangling references")
        self._line("  OK  no dependency cycles")
        self._kv("Order", " -> ".join(spec.order))

    def spec_error(self, message: str) -> None:
        self._line(f"  FAIL  {message}")

    def effective_config(self, profile: str | None, config: Mapping[str, object]) -> None:
        self._kv("Active profile", profile or "(default)")
        self._line(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))

    # Primitives

    def _line(self, text: str) -> None:
        print(text, file=self._stream)

    def _kv(self, key: str, value: object) -> None:
        self._line(f"{key}: {value}")

    def _section(self, title: str) -> None:
        self._line(f"\n{title}")

    def _items(self, entries: Sequence[str]) -> None:
        for entry in entries:
            self._line(f"  - {entry}")

    def _free_form(self, feedback: Sequence[str] | None, instructions: Sequence[str] | None) -> None:
        if feedback:
            self._section("Feedback:")
            self._items(feedback)
        if instructions:
            self._section("Instructions:")
            self._items(instructions)

    def _table(self, headers: Sequence[str], rows: Sequence[Sequence[str]], *, title: str) -> None:
        if not rows:
            return

        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(cell))

        def _pad(cells: Sequence[str]) -> str:
            return "  ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

        self._section(title)
        self._line(f"  {_pad(headers)}")
        self._line(f"  {'  '.join('-' * width for width in widths)}")
        for row in rows:
            self._line(f"  {_pad(row)}")


def create_renderer(*, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(verbose=verbose)


def _compact(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


__all__ = ["CLIRenderer", "create_renderer", "outcome_detail", "outcome_status"]
