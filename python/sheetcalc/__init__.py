"""sheetcalc - spreadsheet formula engine with dependency tracking.

Usage::

    from sheetcalc import CalcSession

    session = CalcSession()
    session.set("A1", 5)
    session.set("B1", "=A1*2")
    session.set("A1", 10)
    print(session.get("B1"))  # 20
"""

from sheetcalc._utils import (
    a1_to_rowcol,
    cell_key,
    column_index,
    column_letters,
    parse_cell_key,
    rowcol_to_a1,
)
from sheetcalc._workbook import Workbook
from sheetcalc._worksheet import Worksheet
from sheetcalc.calc import CalcSession, CalcSettings, CellError, FormulaEvaluator

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CalcSession",
    "CalcSettings",
    "CellError",
    "FormulaEvaluator",
    "Workbook",
    "Worksheet",
    "a1_to_rowcol",
    "cell_key",
    "column_index",
    "column_letters",
    "parse_cell_key",
    "rowcol_to_a1",
]
