"""Per-call running context and the scoped view handed to each validator."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING

from tool2agent.protocol.feedback import ABSENT

if TYPE_CHECKING:
    from tool2agent.engine.spec import FieldSpec
    from tool2agent.utils.concurrency import CancellationToken


class ContextScopeError(KeyError):
    """A validator read a field outside its ``requires`` / ``influenced_by``."""

    def __init__(self, field_name: str, requested: str) -> None:
        self.field_name = field_name
        self.requested = requested
        super().__init__(
            f"field {field_name!r} may not read {requested!r}: "
            "not listed in requires or influenced_by"
        )

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0])


class FieldContext(Mapping[str, object]):
    """Read-only view of already-valid normalized values for one validator.

    Iteration and ``len`` cover the names currently available: every
    ``requires`` entry plus the ``influenced_by`` entries that were valid
    when the field was reached.
    """

    __slots__ = ("_field_name", "_scope", "_values", "_cancel_token")

    def __init__(
        self,
        field_name: str,
        scope: frozenset[str],
        values: Mapping[str, object],
        cancel_token: CancellationToken,
    ) -> None:
        self._field_name = field_name
        self._scope = scope
        self._values = {name: value for name, value in values.items() if name in scope}
        self._cancel_token = cancel_token

    @property
    def field_name(self) -> str:
        return self._field_name

    @property
    def scope(self) -> frozenset[str]:
        return self._scope

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel_token

    def __getitem__(self, name: str) -> object:
        if name not in self._scope:
            raise ContextScopeError(self._field_name, name)
        return self._values[name]

    def get(self, name: str, default: object = ABSENT) -> object:  # type: ignore[override]
        if name not in self._scope:
            raise ContextScopeError(self._field_name, name)
        return self._values.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FieldContext(field={self._field_name!r}, available={sorted(self._values)!r})"


class ValidationContext:
    """Running map of normalized values for the fields valid so far in one call."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, object] = {}

    def record(self, name: str, value: object) -> None:
        if value is ABSENT:
            return
        self._values[name] = value

    def is_recorded(self, name: str) -> bool:
        return name in self._values

    def view(self, spec: FieldSpec, cancel_token: CancellationToken) -> FieldContext:
        return FieldContext(spec.name, spec.scope, self._values, cancel_token)

    def snapshot(self) -> dict[str, object]:
        return dict(self._values)


__all__ = ["ContextScopeError", "FieldContext", "ValidationContext"]
