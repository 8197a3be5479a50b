"""Dependency index over a sheet's cells.

Edges are plain coordinate sets, never object pointers:

* ``depends_on[c]`` -- cells that formula ``c`` reads
* ``dependents[c]`` -- cells whose formulas read ``c``

After every public mutation, ``a in depends_on[b]`` iff ``b in dependents[a]``.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

from gridcalc.addressing import Coord, scan_refs


class DependencyGraph:
    """Tracks formula cell dependencies for evaluation ordering."""

    __slots__ = ("depends_on", "dependents")

    def __init__(self) -> None:
        self.depends_on: dict[Coord, set[Coord]] = {}
        self.dependents: dict[Coord, set[Coord]] = {}

    def precedents_of(self, coord: Coord) -> set[Coord]:
        return set(self.depends_on.get(coord, ()))

    def dependents_of(self, coord: Coord) -> set[Coord]:
        return set(self.dependents.get(coord, ()))

    def set_dependencies(self, coord: Coord, refs: Iterable[Coord]) -> set[Coord]:
        """Replace the outgoing edges of ``coord``.

        Returns:
            The previous depends-on set, for rollback.
        """
        old = self.depends_on.pop(coord, set())
        for ref in old:
            back = self.dependents.get(ref)
            if back is not None:
                back.discard(coord)
                if not back:
                    del self.dependents[ref]

        new = set(refs)
        if new:
            self.depends_on[coord] = new
            for ref in new:
                self.dependents.setdefault(ref, set()).add(coord)
        return old

    def set_formula(self, coord: Coord, raw: str | None) -> set[Coord]:
        """Recompute the edges of ``coord`` from its raw text."""
        return self.set_dependencies(coord, scan_refs(raw))

    def remove(self, coord: Coord) -> None:
        """Drop the outgoing edges of ``coord`` (incoming edges stay)."""
        self.set_dependencies(coord, ())

    def clear(self) -> None:
        self.depends_on.clear()
        self.dependents.clear()

    @classmethod
    def from_formulas(cls, formulas: Iterable[tuple[Coord, str | None]]) -> DependencyGraph:
        """Build an index from ``(coord, raw_text)`` pairs."""
        graph = cls()
        for coord, raw in formulas:
            graph.set_formula(coord, raw)
        return graph

    def closure(self, roots: Iterable[Coord]) -> set[Coord]:
        """Roots plus everything reachable over dependents edges (BFS)."""
        seen: set[Coord] = set(roots)
        queue: deque[Coord] = deque(seen)
        while queue:
            cell = queue.popleft()
            for dep in self.dependents.get(cell, ()):
                if dep not in seen:
                    seen.add(dep)
                    queue.append(dep)
        return seen

    def order(self, nodes: set[Coord]) -> tuple[list[Coord], set[Coord]]:
        """Topologically order ``nodes`` (Kahn's algorithm).

        Only edges between members of ``nodes`` count.

        Returns:
            ``(ordered, cyclic)`` -- ``cyclic`` holds the nodes that could not
            be ordered because they sit on or behind a cycle.
        """
        in_degree: dict[Coord, int] = {}
        for cell in nodes:
            in_degree[cell] = len(self.depends_on.get(cell, set()) & nodes)

        # Sorted seeds keep evaluation order deterministic.
        queue: deque[Coord] = deque(sorted(c for c in nodes if in_degree[c] == 0))
        ordered: list[Coord] = []
        while queue:
            cell = queue.popleft()
            ordered.append(cell)
            for dep in sorted(self.dependents.get(cell, ())):
                if dep in in_degree:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        cyclic = nodes - set(ordered)
        return ordered, cyclic

    def affected(self, roots: Iterable[Coord]) -> tuple[list[Coord], set[Coord]]:
        """Closure of ``roots`` in evaluation order, plus unorderable cells."""
        return self.order(self.closure(roots))

    def is_consistent(self) -> bool:
        """Check the symmetric-edge invariant."""
        for cell, refs in self.depends_on.items():
            for ref in refs:
                if cell not in self.dependents.get(ref, ()):
                    return False
        for cell, deps in self.dependents.items():
            for dep in deps:
                if cell not in self.depends_on.get(dep, ()):
                    return False
        return True
