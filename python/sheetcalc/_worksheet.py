"""Worksheet: a sparse, auto-extending 2-D cell store."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from sheetcalc._utils import a1_to_rowcol, rowcol_to_a1

if TYPE_CHECKING:
    from sheetcalc._workbook import Workbook


class Worksheet:
    """A single sheet of a :class:`Workbook`.

    Values live in a list of row lists. Rows and columns are created on
    demand when a cell is written, and reads outside the stored area
    return ``None``.
    """

    __slots__ = ("_workbook", "_title", "_rows", "_next_append_row")

    def __init__(self, workbook: Workbook, title: str) -> None:
        self._workbook = workbook
        self._title = title
        self._rows: list[list[Any]] = []
        self._next_append_row: int = 0

    @property
    def title(self) -> str:
        return self._title

    # ------------------------------------------------------------------
    # Cell access (zero-based)
    # ------------------------------------------------------------------

    def get(self, row: int, col: int) -> Any:
        """Value at zero-based ``(row, col)``, or ``None`` when absent."""
        if row < 0 or col < 0 or row >= len(self._rows):
            return None
        cells = self._rows[row]
        if col >= len(cells):
            return None
        return cells[col]

    def set(self, row: int, col: int, value: Any) -> None:
        """Store *value* at zero-based ``(row, col)``, growing the sheet."""
        if row < 0 or col < 0:
            raise ValueError(f"Cell position must be non-negative, got ({row}, {col})")
        while len(self._rows) <= row:
            self._rows.append([])
        cells = self._rows[row]
        if len(cells) <= col:
            cells.extend([None] * (col + 1 - len(cells)))
        cells[col] = value

    def __getitem__(self, key: str) -> Any:
        """``ws['A1']`` -> value."""
        row, col = a1_to_rowcol(key)
        return self.get(row, col)

    def __setitem__(self, key: str, value: Any) -> None:
        """``ws['A1'] = 42``. Stores the raw value; no recalculation."""
        row, col = a1_to_rowcol(key)
        self.set(row, col, value)

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------

    def append(self, iterable: Iterable[Any]) -> None:
        """Append a row of values below the last appended row."""
        row = self._next_append_row
        for col, value in enumerate(iterable):
            self.set(row, col, value)
        while len(self._rows) <= row:
            self._rows.append([])
        self._next_append_row = row + 1

    def iter_rows(self, values_only: bool = True) -> Iterator[tuple[Any, ...]]:
        """Yield every row padded to :attr:`max_column`.

        With ``values_only=False`` each item is ``(a1, value)`` instead.
        """
        width = self.max_column
        for r, cells in enumerate(self._rows):
            padded = list(cells) + [None] * (width - len(cells))
            if values_only:
                yield tuple(padded)
            else:
                yield tuple((rowcol_to_a1(r, c), v) for c, v in enumerate(padded))

    def iter_cells(self) -> Iterator[tuple[int, int, Any]]:
        """Yield ``(row, col, value)`` for every non-empty cell."""
        for r, cells in enumerate(self._rows):
            for c, value in enumerate(cells):
                if value is not None:
                    yield r, c, value

    @property
    def max_row(self) -> int:
        """Number of stored rows."""
        return len(self._rows)

    @property
    def max_column(self) -> int:
        """Width of the widest stored row."""
        return max((len(r) for r in self._rows), default=0)

    def to_rows(self) -> list[list[Any]]:
        return [list(r) for r in self._rows]

    def __repr__(self) -> str:
        return f"<Worksheet {self._title!r} {self.max_row}x{self.max_column}>"
