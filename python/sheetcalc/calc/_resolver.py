"""Reference resolution: cell/range tokens -> sheet and zero-based positions.

Resolution is permissive. A malformed or dangling single-cell reference
reads as 0 and a bad range reads as an empty list, so a formula that is
still being edited keeps producing a value.
"""

from __future__ import annotations

import re
from typing import Any

from sheetcalc._utils import column_index
from sheetcalc.calc._protocol import Grid

_CELL_TOKEN_RE = re.compile(r"^([A-Za-z]+)(\d+)$")


def parse_cell_token(token: str) -> tuple[int, int] | None:
    """``"B12"`` -> ``(11, 1)``; None if *token* is not a single-cell token."""
    m = _CELL_TOKEN_RE.match(token.strip())
    if not m or int(m.group(2)) < 1:
        return None
    return int(m.group(2)) - 1, column_index(m.group(1))


def resolve_sheet_scope(token: str, current_sheet: str) -> tuple[str, str] | None:
    """Split an optional ``Sheet!`` prefix off *token*.

    Returns ``(sheet, rest)``. A token with more than one ``!`` is invalid
    and gives None. Quoted names (``'My Sheet'!A1``) are unquoted.
    """
    bangs = token.count("!")
    if bangs == 0:
        return current_sheet, token.strip()
    if bangs > 1:
        return None
    sheet, rest = token.split("!")
    sheet = sheet.strip()
    if len(sheet) >= 2 and sheet[0] == sheet[-1] == "'":
        sheet = sheet[1:-1]
    return sheet, rest.strip()


def resolve_cell(token: str, current_sheet: str) -> tuple[str, int, int] | None:
    """``"Sheet2!A1"`` -> ``("Sheet2", 0, 0)``, or None if invalid."""
    scope = resolve_sheet_scope(token, current_sheet)
    if scope is None:
        return None
    sheet, rest = scope
    pos = parse_cell_token(rest)
    if pos is None:
        return None
    return sheet, pos[0], pos[1]


def resolve_range(
    token: str,
    current_sheet: str,
    normalize: bool = True,
) -> tuple[str, range, range] | None:
    """``"A1:B3"`` -> ``(sheet, rows, cols)`` with zero-based index ranges.

    With ``normalize`` off the literal start/end are kept, so a reversed
    range such as ``B5:A1`` covers no cells.
    """
    scope = resolve_sheet_scope(token, current_sheet)
    if scope is None:
        return None
    sheet, rest = scope
    parts = rest.split(":")
    if len(parts) != 2:
        return None
    start, end = parse_cell_token(parts[0]), parse_cell_token(parts[1])
    if start is None or end is None:
        return None
    (r0, c0), (r1, c1) = start, end
    if normalize:
        r0, r1 = min(r0, r1), max(r0, r1)
        c0, c1 = min(c0, c1), max(c0, c1)
    return sheet, range(r0, r1 + 1), range(c0, c1 + 1)


def read_cell(grid: Grid, current_sheet: str, token: str, default: Any = 0) -> Any:
    """Value of the cell *token* names, or *default* when it is empty or invalid."""
    resolved = resolve_cell(token, current_sheet)
    if resolved is None:
        return default
    value = grid.get(*resolved)
    return default if value is None else value


def read_range(
    grid: Grid,
    current_sheet: str,
    token: str,
    normalize: bool = True,
) -> list[Any]:
    """Row-major cell values of a range; empty cells are None."""
    resolved = resolve_range(token, current_sheet, normalize)
    if resolved is None:
        return []
    sheet, rows, cols = resolved
    return [grid.get(sheet, r, c) for r in rows for c in cols]
