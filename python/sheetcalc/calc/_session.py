"""CalcSession: owns a workbook and its dependency graph, and keeps every
formula cell consistent after each edit.

Usage::

    session = CalcSession()
    session.set("A1", 5)
    session.set("B1", "=A1*2")
    session.set("A1", 10)
    session.get("B1")  # 20
"""

from __future__ import annotations

import logging
from typing import Any

from sheetcalc._utils import cell_key, parse_cell_key
from sheetcalc._workbook import Workbook
from sheetcalc.calc._evaluator import FormulaEvaluator
from sheetcalc.calc._functions import CellError, FunctionRegistry
from sheetcalc.calc._graph import DependencyGraph, RecalcPlan
from sheetcalc.calc._parser import is_formula
from sheetcalc.calc._protocol import CellDelta, RecalcResult
from sheetcalc.calc._resolver import resolve_cell
from sheetcalc.calc._settings import CalcSettings

logger = logging.getLogger(__name__)


def _values_differ(a: Any, b: Any, tolerance: float) -> bool:
    """Check if two values differ beyond tolerance."""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is not type(b) or a != b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return abs(float(a) - float(b)) > tolerance
    return type(a) is not type(b) or a != b


class CalcSession:
    """One independent workbook plus the formula bookkeeping for it.

    Every write goes through :meth:`set_cell`. A literal is stored as is,
    a formula is registered and evaluated, and then every formula cell
    that depends on the edited cell is re-evaluated once, in topological
    order. Cells on a circular reference get ``#CYCLE!``.

    Not thread-safe: callers must serialize writes.
    """

    def __init__(
        self,
        workbook: Workbook | None = None,
        settings: CalcSettings | None = None,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._settings = settings if settings is not None else CalcSettings()
        if workbook is None:
            workbook = Workbook(sheet_names=(self._settings.default_sheet,))
        self._workbook = workbook
        self._graph = DependencyGraph()
        self._evaluator = FormulaEvaluator(functions, self._settings.normalize_ranges)

    @property
    def workbook(self) -> Workbook:
        return self._workbook

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def settings(self) -> CalcSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Bulk calculation
    # ------------------------------------------------------------------

    def load(self) -> dict[str, Any]:
        """Register every formula already in the workbook and calculate.

        Formulas the session already tracks are kept: their cells hold
        computed values, not formula text. Returns ``{cell_key: value}`` for
        all formula cells.
        """
        normalize = self._settings.normalize_ranges
        graph = DependencyGraph.from_workbook(self._workbook, normalize)
        for key, formula in self._graph.formulas.items():
            if key not in graph:
                graph.add_formula(key, formula, parse_cell_key(key)[0], normalize)
        self._graph = graph
        return self.calculate()

    def calculate(self) -> dict[str, Any]:
        """Re-evaluate every formula cell in topological order."""
        return self._run(self._graph.plan_all())

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_cell(self, sheet: str, row: int, col: int, value: Any) -> RecalcResult:
        """Write *value* (a literal or ``=formula`` text) and cascade."""
        key = cell_key(sheet, row, col)
        old_value = self._workbook.get(sheet, row, col)

        self._graph.clear_dependencies(key)
        if is_formula(value):
            self._graph.add_formula(key, value, sheet, self._settings.normalize_ranges)
            plan = self._graph.plan({key}, include_changed=True)
        else:
            self._workbook.set(sheet, row, col, value)
            plan = self._graph.plan({key})

        old_values = {k: self._workbook.get(*parse_cell_key(k)) for k in (*plan.order, *plan.cyclic)}
        old_values[key] = old_value
        results = self._run(plan)
        logger.debug("Edit to %s re-evaluated %d formula cell(s)", key, len(plan.order))

        new_values = dict(results)
        new_values.setdefault(key, value)
        deltas: list[CellDelta] = []
        for k, new_val in new_values.items():
            old_val = old_values.get(k)
            if _values_differ(old_val, new_val, self._settings.tolerance):
                deltas.append(CellDelta(
                    cell_key=k,
                    old_value=old_val,
                    new_value=new_val,
                    formula=self._graph.formulas.get(k),
                ))

        return RecalcResult(
            edited=key,
            deltas=tuple(deltas),
            evaluated_cells=len(plan.order),
            total_formula_cells=len(self._graph),
            max_chain_depth=self._graph.max_depth({key}, plan),
            cyclic=plan.cyclic,
        )

    def clear_cell(self, sheet: str, row: int, col: int) -> RecalcResult:
        """Empty a cell, dropping any formula it held."""
        return self.set_cell(sheet, row, col, None)

    def set(self, ref: str, value: Any) -> RecalcResult:
        """:meth:`set_cell` addressed by ``"B3"`` or ``"Sheet2!B3"``."""
        sheet, row, col = self._resolve(ref)
        return self.set_cell(sheet, row, col, value)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, sheet: str, row: int, col: int) -> Any:
        return self._workbook.get(sheet, row, col)

    def get_formula(self, sheet: str, row: int, col: int) -> str | None:
        return self._graph.formulas.get(cell_key(sheet, row, col))

    def get(self, ref: str) -> Any:
        """Value of ``"B3"`` or ``"Sheet2!B3"``."""
        return self.get_value(*self._resolve(ref))

    def dependents_of(self, sheet: str, row: int, col: int) -> list[str]:
        """Keys of formula cells that read the given cell directly."""
        return sorted(self._graph.dependents.get(cell_key(sheet, row, col), set()))

    def precedents_of(self, sheet: str, row: int, col: int) -> list[str]:
        """Keys of cells the given formula cell reads directly."""
        return sorted(self._graph.dependencies.get(cell_key(sheet, row, col), set()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, ref: str) -> tuple[str, int, int]:
        active = self._workbook.active
        current = active.title if active is not None else self._settings.default_sheet
        resolved = resolve_cell(ref, current)
        if resolved is None:
            raise ValueError(f"Invalid cell reference: {ref!r}")
        return resolved

    def _run(self, plan: RecalcPlan) -> dict[str, Any]:
        """Apply *plan*: mark cycles, then evaluate in order."""
        results: dict[str, Any] = {}
        if plan.cyclic:
            logger.warning("Circular reference detected involving: %s", sorted(plan.cyclic))
        for key in sorted(plan.cyclic):
            sheet, row, col = parse_cell_key(key)
            self._workbook.set(sheet, row, col, CellError.CYCLE)
            results[key] = CellError.CYCLE
        for key in plan.order:
            sheet, row, col = parse_cell_key(key)
            value = self._evaluator.evaluate(sheet, row, col, self._graph.formulas[key], self._workbook)
            self._workbook.set(sheet, row, col, value)
            results[key] = value
        return results
