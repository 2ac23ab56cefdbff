"""Dependency graph for formula cells with topological recalculation plans."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sheetcalc._utils import cell_key
from sheetcalc.calc._parser import all_references, is_formula

if TYPE_CHECKING:
    from sheetcalc._workbook import Workbook


class CircularReferenceError(ValueError):
    """Raised by :meth:`DependencyGraph.topological_order` on a cycle."""

    def __init__(self, cells: Iterable[str]) -> None:
        self.cells = frozenset(cells)
        super().__init__(f"Circular reference detected involving: {sorted(self.cells)}")


@dataclass(frozen=True)
class RecalcPlan:
    """Formula cells to re-evaluate after a change.

    ``order`` is topological: every cell comes after the cells it reads.
    ``cyclic`` cells sit on a circular reference and are not in ``order``;
    cells downstream of a cycle are, after everything they can be ordered
    behind.
    """

    order: tuple[str, ...]
    cyclic: frozenset[str]


class DependencyGraph:
    """Tracks which references each formula cell reads, and the reverse.

    ``dependencies`` maps a formula cell key to the set of references its
    formula reads, ``dependents`` is the exact transpose, and ``formulas``
    holds each formula cell's text. A cell without a formula has no entry
    in ``dependencies`` or ``formulas``.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of references it reads from
        self.dependencies: dict[str, set[str]] = {}
        # reference -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # cell -> formula string
        self.formulas: dict[str, str] = {}

    def __contains__(self, cell: object) -> bool:
        return cell in self.formulas

    def __len__(self) -> int:
        return len(self.formulas)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def set_dependencies(self, cell: str, refs: Iterable[str], formula: str) -> None:
        """Replace *cell*'s forward edges with *refs* and record its formula."""
        self._unlink(cell)
        new_refs = set(refs)
        self.dependencies[cell] = new_refs
        self.formulas[cell] = formula
        for ref in new_refs:
            if ref not in self.dependents:
                self.dependents[ref] = set()
            self.dependents[ref].add(cell)

    def clear_dependencies(self, cell: str) -> None:
        """Forget *cell*'s formula and all of its forward edges."""
        self._unlink(cell)
        self.dependencies.pop(cell, None)
        self.formulas.pop(cell, None)

    def _unlink(self, cell: str) -> None:
        for ref in self.dependencies.get(cell, ()):
            readers = self.dependents.get(ref)
            if readers is None:
                continue
            readers.discard(cell)
            if not readers:
                del self.dependents[ref]

    def add_formula(
        self,
        cell: str,
        formula: str,
        current_sheet: str,
        normalize_ranges: bool = True,
    ) -> None:
        """Register a formula cell and its canonical cell-key dependencies."""
        refs = all_references(formula, current_sheet, normalize_ranges)
        self.set_dependencies(cell, refs, formula)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _readers(self, cell: str, within: set[str]) -> list[str]:
        return sorted(self.dependents.get(cell, set()) & within)

    def _kahn(self, cells: set[str]) -> tuple[list[str], set[str]]:
        """Order *cells* by Kahn's algorithm over edges inside *cells*.

        Returns ``(order, blocked)``; blocked cells sit on or behind a cycle.
        """
        in_degree: dict[str, int] = {}
        for cell in cells:
            in_degree[cell] = len(self.dependencies.get(cell, set()) & cells)

        queue: deque[str] = deque(c for c in sorted(cells) if in_degree[c] == 0)
        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in self._readers(cell, cells):
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)

        return order, cells - set(order)

    def _cycle_members(self, cells: set[str]) -> set[str]:
        """Cells of *cells* that lie on a cycle (Tarjan's SCC, iterative)."""
        index: dict[str, int] = {}
        low: dict[str, int] = {}
        stack: list[str] = []
        on_stack: set[str] = set()
        members: set[str] = set()
        counter = 0

        for root in sorted(cells):
            if root in index:
                continue
            index[root] = low[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, iter(self._readers(root, cells)))]
            while work:
                node, children = work[-1]
                descended = False
                for child in children:
                    if child not in index:
                        index[child] = low[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(self._readers(child, cells))))
                        descended = True
                        break
                    if child in on_stack:
                        low[node] = min(low[node], index[child])
                if descended:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component: set[str] = set()
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.add(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self.dependencies.get(node, set()):
                        members |= component

        return members

    def affected_cells(self, changed: Iterable[str], include_changed: bool = False) -> set[str]:
        """Formula cells reachable from *changed* through reverse edges.

        With ``include_changed`` the formula cells among *changed* are
        included too.
        """
        roots = set(changed)
        affected: set[str] = {c for c in roots if c in self.formulas} if include_changed else set()
        queue: deque[str] = deque(roots)
        visited: set[str] = set(roots)

        while queue:
            cell = queue.popleft()
            for dep in self.dependents.get(cell, set()):
                if dep in self.formulas:
                    affected.add(dep)
                if dep not in visited:
                    visited.add(dep)
                    queue.append(dep)

        return affected

    def plan(self, changed: Iterable[str], include_changed: bool = False) -> RecalcPlan:
        """Evaluation plan for everything downstream of *changed*."""
        return self._plan_for(self.affected_cells(changed, include_changed))

    def plan_all(self) -> RecalcPlan:
        """Evaluation plan covering every formula cell."""
        return self._plan_for(set(self.formulas))

    def _plan_for(self, cells: set[str]) -> RecalcPlan:
        order, blocked = self._kahn(cells)
        if not blocked:
            return RecalcPlan(tuple(order), frozenset())
        cyclic = self._cycle_members(blocked)
        downstream, _ = self._kahn(blocked - cyclic)
        return RecalcPlan(tuple(order + downstream), frozenset(cyclic))

    def topological_order(self) -> list[str]:
        """Return all formula cells in evaluation order.

        Raises CircularReferenceError if a circular reference is detected.
        """
        order, blocked = self._kahn(set(self.formulas))
        if blocked:
            raise CircularReferenceError(self._cycle_members(blocked))
        return order

    def max_depth(self, roots: Iterable[str], plan: RecalcPlan | None = None) -> int:
        """Longest dependency chain from *roots* through formula cells.

        Cycle members do not count towards the depth.
        """
        roots = set(roots)
        if not roots:
            return 0
        if plan is None:
            plan = self.plan(roots)

        depth: dict[str, int] = {r: 0 for r in roots}
        for cell in plan.order:
            upstream = [depth[d] for d in self.dependencies.get(cell, set()) if d in depth]
            if upstream:
                depth[cell] = max(upstream) + 1
        return max(depth.values())

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_workbook(cls, workbook: Workbook, normalize_ranges: bool = True) -> DependencyGraph:
        """Build a dependency graph by scanning all sheets for formula cells."""
        graph = cls()

        for sheet_name in workbook.sheetnames:
            for row, col, value in workbook[sheet_name].iter_cells():
                if is_formula(value):
                    graph.add_formula(cell_key(sheet_name, row, col), value, sheet_name, normalize_ranges)

        return graph
