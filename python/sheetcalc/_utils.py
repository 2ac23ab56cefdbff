"""Address helpers: column letters, A1 coordinates and cell keys.

All row/column indices are zero-based. Text forms use 1-based rows and
base-26 column letters (A=0, Z=25, AA=26).
"""

from __future__ import annotations

import re

_A1_RE = re.compile(r"^([A-Za-z]+)(\d+)$")
_CELL_KEY_RE = re.compile(r"^(.*)!R(\d+)C(\d+)$", re.DOTALL)


def column_index(letters: str) -> int:
    """Convert column letters to a zero-based index (A -> 0, AA -> 26)."""
    if not letters or not letters.isascii() or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - 64)
    return idx - 1


def column_letters(index: int) -> str:
    """Convert a zero-based column index to letters (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    result = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """``"B3"`` -> ``(2, 1)``. Raises ValueError for anything else."""
    m = _A1_RE.match(ref.strip())
    if not m or int(m.group(2)) < 1:
        raise ValueError(f"Invalid cell reference: {ref!r}")
    return int(m.group(2)) - 1, column_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """``(2, 1)`` -> ``"B3"``."""
    if row < 0:
        raise ValueError(f"Row index must be >= 0, got {row}")
    return f"{column_letters(col)}{row + 1}"


def cell_key(sheet: str, row: int, col: int) -> str:
    """Canonical dependency identity of a cell: ``Sheet1!R0C1``."""
    return f"{sheet}!R{row}C{col}"


def parse_cell_key(key: str) -> tuple[str, int, int]:
    """Inverse of :func:`cell_key`."""
    m = _CELL_KEY_RE.match(key)
    if not m:
        raise ValueError(f"Invalid cell key: {key!r}")
    return m.group(1), int(m.group(2)), int(m.group(3))
