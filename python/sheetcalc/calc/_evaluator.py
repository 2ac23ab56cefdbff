"""FormulaEvaluator: turns one formula into one cell value.

The formula body is parsed by the recursive-descent parser in
:mod:`sheetcalc.calc._expression`. Cell references are read through the
resolver, and function calls are dispatched to a :class:`FunctionRegistry`.

Evaluation is total: :meth:`FormulaEvaluator.evaluate` never raises. Any
failure becomes a :class:`CellError` value.
"""

from __future__ import annotations

import logging
import math
import re
import sys
from typing import Any

from sheetcalc.calc._expression import evaluate_tree, parse_expression
from sheetcalc.calc._functions import CellError, FunctionRegistry, first_error
from sheetcalc.calc._parser import CELL_TOKEN, SHEET_PREFIX, is_formula, split_args
from sheetcalc.calc._protocol import Grid
from sheetcalc.calc._resolver import read_cell, read_range

logger = logging.getLogger(__name__)

_CELL_ARG_RE = re.compile(rf"^(?:{SHEET_PREFIX})*{CELL_TOKEN}$")
_RANGE_ARG_RE = re.compile(rf"^(?:{SHEET_PREFIX})*{CELL_TOKEN}\s*:\s*{CELL_TOKEN}$")


class FormulaEvaluator:
    """Evaluates formula text against a :class:`Grid`.

    Usage::

        evaluator = FormulaEvaluator()
        value = evaluator.evaluate("Sheet1", 0, 1, "=A1*2", workbook)
    """

    def __init__(
        self,
        functions: FunctionRegistry | None = None,
        normalize_ranges: bool = True,
    ) -> None:
        self._functions = functions if functions is not None else FunctionRegistry()
        self._normalize_ranges = normalize_ranges

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def evaluate(self, sheet: str, row: int, col: int, formula: str, grid: Grid) -> Any:
        """Evaluate *formula* as the content of cell ``(sheet, row, col)``.

        Text without a leading ``=`` is returned unchanged.
        """
        if not is_formula(formula):
            return formula
        body = formula[1:].strip()
        try:
            result = self._eval_expr(body, grid, sheet)
        except Exception as e:
            logger.debug("Cannot evaluate formula %r in %s!R%dC%d: %s", formula, sheet, row, col, e)
            return CellError.ERROR
        if result is None or isinstance(result, (list, tuple)):
            return CellError.ERROR
        if (isinstance(result, float) and not math.isfinite(result)) or (
            isinstance(result, int) and abs(result) > sys.float_info.max
        ):
            logger.debug("Non-finite result for %r in %s!R%dC%d", formula, sheet, row, col)
            return CellError.ERROR
        return result

    # ------------------------------------------------------------------
    # Expression evaluation
    # ------------------------------------------------------------------

    def _eval_expr(self, expr: str, grid: Grid, sheet: str) -> Any:
        tree = parse_expression(expr)
        return evaluate_tree(
            tree,
            lambda token: read_cell(grid, sheet, token),
            lambda name, args_str: self._eval_function(name, args_str, grid, sheet),
        )

    def _resolve_arg(self, arg: str, grid: Grid, sheet: str) -> Any:
        """Resolve a single function argument.

        A bare range gives the list of its raw values and a bare cell
        reference gives the raw cell value (None when empty). Everything
        else is evaluated as an expression.
        """
        text = arg.strip()
        if _RANGE_ARG_RE.match(text):
            return read_range(grid, sheet, text, self._normalize_ranges)
        if _CELL_ARG_RE.match(text):
            return read_cell(grid, sheet, text, default=None)
        return self._eval_expr(text, grid, sheet)

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, func_name: str, args_str: str, grid: Grid, sheet: str) -> Any:
        """Evaluate a function call.

        Functions with ``_lazy_args = True`` receive raw argument strings and
        a callback resolving one of them, rather than resolved values.
        """
        func = self._functions.get(func_name)
        if func is None:
            logger.debug("Unsupported function: %s", func_name)
            return CellError.FUNC
        raw_args = split_args(args_str)
        if getattr(func, "_lazy_args", False):
            return func(raw_args, lambda arg: self._resolve_arg(arg, grid, sheet))
        args = [self._resolve_arg(a, grid, sheet) for a in raw_args]
        err = first_error(*args)
        if err is not None:
            return err
        return func(args)
