"""
tool2agent — field and tool specifications.

Purpose
- Declare the fields of a tool, their validators and their dependencies.
- Build an immutable ``ToolSpec`` once per tool definition: duplicate names,
  dangling references and ``requires`` cycles are rejected here, and the
  evaluation order is computed and cached.

Determinism
- Dependency lists are rewritten into declaration order at build time.
- The evaluation order is a pure function of the declared fields.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

import structlog

from tool2agent.engine.graph import (
    CycleError,
    DanglingReferenceError,
    DependencyGraph,
    SpecError,
)
from tool2agent.protocol.feedback import FieldOutcome
from tool2agent.schema.shape import InputShape

if TYPE_CHECKING:
    from tool2agent.engine.context import FieldContext

ValidatorResult: TypeAlias = FieldOutcome | Mapping[str, object]
Validator: TypeAlias = Callable[
    [object, "FieldContext"], ValidatorResult | Awaitable[ValidatorResult]
]
SubmissionCheck: TypeAlias = Callable[
    [Mapping[str, object]], Iterable[str] | None | Awaitable[Iterable[str] | None]
]


class DuplicateFieldError(SpecError):
    """Raised when two fields share a name."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        rendered = ", ".join(repr(name) for name in self.names)
        super().__init__(f"Tool spec declares duplicate field(s): {rendered}")


class ShapeMismatchError(SpecError):
    """Raised when a declared input shape disagrees with the declared fields."""

    def __init__(self, *, missing: Iterable[str], extra: Iterable[str]) -> None:
        self.missing = tuple(missing)
        self.extra = tuple(extra)
        parts: list[str] = []
        if self.missing:
            parts.append(f"fields without shape: {', '.join(self.missing)}")
        if self.extra:
            parts.append(f"shape entries without field: {', '.join(self.extra)}")
        super().__init__("Input shape does not match declared fields (" + "; ".join(parts) + ")")


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldSpec:
    """One input field: its validator and the fields it depends on.

    ``requires`` names fields that must be valid before ``validate`` runs.
    ``influenced_by`` names fields whose values the validator may read when
    they happen to be valid already; it never affects evaluation order.
    """

    name: str
    validate: Validator
    requires: tuple[str, ...] = ()
    influenced_by: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("FieldSpec.name must be a non-empty string")
        if not callable(self.validate):
            raise TypeError(f"FieldSpec.validate for {self.name!r} must be callable")

        requires = _unique_names(self.requires, owner=self.name, relation="requires")
        influenced_by = tuple(
            name
            for name in _unique_names(
                self.influenced_by, owner=self.name, relation="influenced_by"
            )
            if name not in requires
        )
        if self.name in influenced_by:
            raise ValueError(f"field {self.name!r} cannot be influenced by itself")

        object.__setattr__(self, "requires", requires)
        object.__setattr__(self, "influenced_by", influenced_by)

    @property
    def scope(self) -> frozenset[str]:
        """Names the validator may read from the running context."""
        return frozenset(self.requires) | frozenset(self.influenced_by)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable, shareable tool definition produced by :func:`build_spec`."""

    fields: tuple[FieldSpec, ...]
    order: tuple[str, ...]
    input_shape: InputShape | None = None
    output_shape: InputShape | None = None
    description: str = ""
    checks: tuple[SubmissionCheck, ...] = ()
    name: str = "tool"
    _by_name: dict[str, FieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {spec.name: spec for spec in self.fields})
        position = {name: index for index, name in enumerate(self.order)}
        if (
            len(self._by_name) != len(self.fields)
            or len(position) != len(self.order)
            or set(position) != set(self._by_name)
        ):
            raise SpecError("ToolSpec.order must list every declared field exactly once")
        for spec in self.fields:
            for required in spec.requires:
                if position.get(required, len(position)) > position[spec.name]:
                    raise SpecError(
                        f"ToolSpec.order evaluates {spec.name!r} before its requirement {required!r}"
                    )

    @property
    def field_names(self) -> tuple[str, ...]:
        """Field names in declaration order."""
        return tuple(spec.name for spec in self.fields)

    def get_field(self, name: str) -> FieldSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown field: {name}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def dependency_map(self) -> dict[str, object]:
        """JSON-friendly copy of the declared fields and their ``requires`` lists."""
        return {
            "nodes": list(self.field_names),
            "requires": {spec.name: list(spec.requires) for spec in self.fields},
        }


def build_spec(
    fields: Iterable[FieldSpec],
    *,
    name: str = "tool",
    input_shape: InputShape | None = None,
    output_shape: InputShape | None = None,
    description: str = "",
    checks: Iterable[SubmissionCheck] = (),
    logger: Any | None = None,
) -> ToolSpec:
    """Validate field declarations and return the immutable ``ToolSpec``.

    Raises, in this order: ``DuplicateFieldError``, ``DanglingReferenceError``
    (every undeclared reference at once), ``CycleError`` (every cycle),
    ``ShapeMismatchError``.
    """

    declared = tuple(fields)
    log = logger if logger is not None else structlog.get_logger(__name__)

    seen: set[str] = set()
    duplicates: list[str] = []
    for spec in declared:
        if spec.name in seen and spec.name not in duplicates:
            duplicates.append(spec.name)
        seen.add(spec.name)
    if duplicates:
        raise DuplicateFieldError(duplicates)

    graph = DependencyGraph(spec.name for spec in declared)
    dangling = [
        (spec.name, relation, reference)
        for spec in declared
        for relation, references in (
            ("requires", spec.requires),
            ("influenced_by", spec.influenced_by),
        )
        for reference in references
        if reference not in seen
    ]
    if dangling:
        raise DanglingReferenceError(dangling)

    for spec in declared:
        for required in spec.requires:
            graph.add_requirement(spec.name, required)

    cycles = graph.detect_cycles()
    if cycles:
        raise CycleError(cycles)
    order = graph.topological_sort()

    position = {node: index for index, node in enumerate(graph.nodes)}
    normalized = tuple(
        dataclasses.replace(
            spec,
            requires=tuple(sorted(spec.requires, key=position.__getitem__)),
            influenced_by=tuple(sorted(spec.influenced_by, key=position.__getitem__)),
        )
        for spec in declared
    )

    if input_shape is not None:
        shape_names = set(input_shape.field_names)
        missing = [spec.name for spec in normalized if spec.name not in shape_names]
        extra = [item for item in input_shape.field_names if item not in seen]
        if missing or extra:
            raise ShapeMismatchError(missing=missing, extra=extra)

    tool_spec = ToolSpec(
        fields=normalized,
        order=order,
        input_shape=input_shape,
        output_shape=output_shape,
        description=description,
        checks=tuple(checks),
        name=name,
    )
    log.info(
        "tool_spec_built",
        tool=name,
        field_count=len(normalized),
        order=list(order),
    )
    return tool_spec


def compute_order(spec: ToolSpec) -> tuple[str, ...]:
    """Evaluation order of ``spec``: every field after all of its ``requires``."""
    return spec.order


@dataclass(frozen=True, slots=True)
class ToolSpecBuilder:
    """Fluent, immutable builder: each call returns a new builder.

    >>> spec = (
    ...     ToolSpecBuilder(name="booking")
    ...     .field("departure", validate_departure)
    ...     .field("arrival", validate_arrival, requires=["departure"])
    ...     .build()
    ... )
    """

    name: str = "tool"
    description: str = ""
    fields: tuple[FieldSpec, ...] = ()
    checks: tuple[SubmissionCheck, ...] = ()
    input_shape: InputShape | None = None
    output_shape: InputShape | None = None

    def field(
        self,
        name: str,
        validate: Validator,
        *,
        requires: Iterable[str] = (),
        influenced_by: Iterable[str] = (),
        description: str = "",
    ) -> ToolSpecBuilder:
        if any(existing.name == name for existing in self.fields):
            raise DuplicateFieldError([name])
        spec = FieldSpec(
            name=name,
            validate=validate,
            requires=tuple(requires),
            influenced_by=tuple(influenced_by),
            description=description,
        )
        return dataclasses.replace(self, fields=self.fields + (spec,))

    def check(self, check: SubmissionCheck) -> ToolSpecBuilder:
        return dataclasses.replace(self, checks=self.checks + (check,))

    def with_shapes(
        self,
        input_shape: InputShape | None = None,
        output_shape: InputShape | None = None,
    ) -> ToolSpecBuilder:
        return dataclasses.replace(self, input_shape=input_shape, output_shape=output_shape)

    def build(self, *, logger: Any | None = None) -> ToolSpec:
        return build_spec(
            self.fields,
            name=self.name,
            input_shape=self.input_shape,
            output_shape=self.output_shape,
            description=self.description,
            checks=self.checks,
            logger=logger,
        )


def _unique_names(raw: object, *, owner: str, relation: str) -> tuple[str, ...]:
    if isinstance(raw, str) or not isinstance(raw, Iterable):
        raise TypeError(f"{owner}.{relation} must be an iterable of field names, not a string")
    names: list[str] = []
    for item in raw:
        if not isinstance(item, str) or not item:
            raise ValueError(f"{owner}.{relation} entries must be non-empty strings")
        if item not in names:
            names.append(item)
    return tuple(names)


__all__ = [
    "CycleError",
    "DanglingReferenceError",
    "DuplicateFieldError",
    "FieldSpec",
    "ShapeMismatchError",
    "SpecError",
    "SubmissionCheck",
    "ToolSpec",
    "ToolSpecBuilder",
    "Validator",
    "ValidatorResult",
    "build_spec",
    "compute_order",
]
