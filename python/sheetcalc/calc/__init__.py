"""sheetcalc.calc - formula evaluation and dependency tracking."""

from sheetcalc.calc._evaluator import FormulaEvaluator
from sheetcalc.calc._expression import FormulaSyntaxError, evaluate_tree, parse_expression
from sheetcalc.calc._functions import (
    SUPPORTED_FUNCTIONS,
    CellError,
    FunctionRegistry,
    first_error,
    is_error,
    is_supported,
)
from sheetcalc.calc._graph import CircularReferenceError, DependencyGraph, RecalcPlan
from sheetcalc.calc._parser import (
    all_references,
    expand_range,
    is_formula,
    parse_functions,
    parse_range_references,
    parse_references,
    split_args,
)
from sheetcalc.calc._protocol import CellDelta, Grid, RecalcResult
from sheetcalc.calc._resolver import (
    parse_cell_token,
    read_cell,
    read_range,
    resolve_sheet_scope,
)
from sheetcalc.calc._session import CalcSession
from sheetcalc.calc._settings import CalcSettings

__all__ = [
    "SUPPORTED_FUNCTIONS",
    "CalcSession",
    "CalcSettings",
    "CellDelta",
    "CellError",
    "CircularReferenceError",
    "DependencyGraph",
    "FormulaEvaluator",
    "FormulaSyntaxError",
    "FunctionRegistry",
    "Grid",
    "RecalcPlan",
    "RecalcResult",
    "all_references",
    "evaluate_tree",
    "expand_range",
    "first_error",
    "is_error",
    "is_formula",
    "is_supported",
    "parse_cell_token",
    "parse_expression",
    "parse_functions",
    "parse_range_references",
    "parse_references",
    "read_cell",
    "read_range",
    "resolve_sheet_scope",
    "split_args",
]
