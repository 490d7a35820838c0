"""Deterministic ``requires`` graph over declared tool fields."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from heapq import heapify, heappop, heappush


class SpecError(ValueError):
    """Base class for errors that make a tool definition unusable."""


class DanglingReferenceError(SpecError):
    """Raised when a field names an undeclared field in a dependency list."""

    references: tuple[tuple[str, str, str], ...]

    def __init__(self, references: Iterable[tuple[str, str, str]]) -> None:
        # (field, relation, missing name)
        self.references = tuple(references)
        rendered = ", ".join(
            f"{owner}.{relation} -> {missing!r}" for owner, relation, missing in self.references
        )
        super().__init__(f"Tool spec references undeclared field(s): {rendered}")


class CycleError(SpecError):
    """Raised when the ``requires`` relation contains a cycle."""

    cycles: tuple[tuple[str, ...], ...]

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        normalized: tuple[tuple[str, ...], ...] = tuple(tuple(path) for path in cycles)
        self.cycles = normalized

        if not normalized:
            message = "Field dependencies contain at least one cycle."
        else:
            preview = ", ".join(" -> ".join(path + path[:1]) for path in normalized[:3])
            suffix = "..." if len(normalized) > 3 else ""
            message = f"Field dependencies contain cycle(s): {preview}{suffix}"
        super().__init__(message)


class DependencyGraph:
    """Fields as nodes in declaration order; ``requires`` as edges."""

    __slots__ = ("_index", "_nodes", "_requires", "_dependents")

    def __init__(self, nodes: Iterable[str] = ()) -> None:
        self._nodes: list[str] = []
        self._index: dict[str, int] = {}
        self._requires: dict[str, list[str]] = {}
        self._dependents: dict[str, list[str]] = {}
        for node in nodes:
            self.add_node(node)

    @property
    def nodes(self) -> tuple[str, ...]:
        """All fields in declaration order."""
        return tuple(self._nodes)

    def add_node(self, name: str) -> None:
        if not name:
            raise ValueError("Field name must be non-empty.")
        if name in self._index:
            return
        self._index[name] = len(self._nodes)
        self._nodes.append(name)
        self._requires[name] = []
        self._dependents[name] = []

    def add_requirement(self, field_name: str, required: str) -> None:
        """Record that ``field_name`` requires ``required`` to be valid first."""
        if field_name not in self._index:
            raise KeyError(f"Unknown field: {field_name}")
        if required not in self._index:
            raise DanglingReferenceError([(field_name, "requires", required)])
        if required in self._requires[field_name]:
            return
        self._requires[field_name].append(required)
        self._dependents[required].append(field_name)

    def requires_of(self, name: str) -> tuple[str, ...]:
        """Direct requirements of ``name`` in declaration order."""
        return tuple(sorted(self._requires[name], key=self._index.__getitem__))

    def dependents_of(self, name: str) -> tuple[str, ...]:
        return tuple(sorted(self._dependents[name], key=self._index.__getitem__))

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """
        Detect directed cycles with an iterative depth-first search.

        Each cycle is the suffix of the DFS path starting at the node that was
        found on the stack, e.g. ``("A", "B")`` for ``A requires B requires A``
        and ``("A",)`` for a self-requirement.
        """
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: list[tuple[str, ...]] = []

        for start in self._nodes:
            if state.get(start, 0) != 0:
                continue

            state[start] = 1
            stack_index[start] = len(stack)
            stack.append(start)
            frames: list[tuple[str, Iterator[str]]] = [(start, iter(self.requires_of(start)))]

            while frames:
                node, neighbour_iter = frames[-1]

                try:
                    neighbour = next(neighbour_iter)
                except StopIteration:
                    frames.pop()
                    state[node] = 2
                    stack.pop()
                    del stack_index[node]
                    continue

                neighbour_state = state.get(neighbour, 0)
                if neighbour_state == 0:
                    state[neighbour] = 1
                    stack_index[neighbour] = len(stack)
                    stack.append(neighbour)
                    frames.append((neighbour, iter(self.requires_of(neighbour))))
                    continue

                if neighbour_state == 1:
                    cycles.append(tuple(stack[stack_index[neighbour] :]))

        return tuple(cycles)

    def topological_sort(self) -> tuple[str, ...]:
        """Kahn's algorithm; ties resolve to the earliest declared field."""
        unresolved: dict[str, int] = {node: len(self._requires[node]) for node in self._nodes}
        ready: list[tuple[int, str]] = [
            (self._index[node], node) for node, count in unresolved.items() if count == 0
        ]
        heapify(ready)

        order: list[str] = []
        while ready:
            _, node = heappop(ready)
            order.append(node)

            for dependent in self._dependents[node]:
                unresolved[dependent] -= 1
                if unresolved[dependent] == 0:
                    heappush(ready, (self._index[dependent], dependent))

        if len(order) != len(self._nodes):
            raise CycleError(self.detect_cycles())

        return tuple(order)

    def serialize(self) -> dict[str, object]:
        """Stable JSON-friendly mapping of nodes and their requirements."""
        return {
            "nodes": list(self._nodes),
            "requires": {node: list(self.requires_of(node)) for node in self._nodes},
        }


__all__ = [
    "CycleError",
    "DanglingReferenceError",
    "DependencyGraph",
    "SpecError",
]
