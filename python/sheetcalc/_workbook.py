"""Workbook: sheet name -> :class:`Worksheet` mapping used as the calc grid."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from sheetcalc._worksheet import Worksheet


class Workbook:
    """In-memory workbook.

    Implements the :class:`sheetcalc.calc.Grid` protocol: ``get`` never
    raises and returns ``None`` for missing sheets or cells, ``set`` creates
    sheets and extends rows as needed.
    """

    def __init__(self, sheet_names: Iterable[str] = ("Sheet1",)) -> None:
        self._sheet_names: list[str] = []
        self._sheets: dict[str, Worksheet] = {}
        for name in sheet_names:
            self.create_sheet(name)

    @classmethod
    def from_dict(cls, sheets: Mapping[str, Iterable[Iterable[Any]]]) -> Workbook:
        """Build a workbook from ``{sheet_name: [[row values], ...]}``."""
        wb = cls(sheet_names=())
        for name, rows in sheets.items():
            ws = wb.create_sheet(name)
            for row in rows:
                ws.append(row)
        return wb

    def to_dict(self) -> dict[str, list[list[Any]]]:
        return {name: self._sheets[name].to_rows() for name in self._sheet_names}

    # ------------------------------------------------------------------
    # Sheet access
    # ------------------------------------------------------------------

    @property
    def sheetnames(self) -> list[str]:
        return list(self._sheet_names)

    @property
    def active(self) -> Worksheet | None:
        """Return the first sheet, or None if no sheets exist."""
        if self._sheet_names:
            return self._sheets[self._sheet_names[0]]
        return None

    def __getitem__(self, name: str) -> Worksheet:
        if name not in self._sheets:
            raise KeyError(f"Worksheet '{name}' does not exist")
        return self._sheets[name]

    def __contains__(self, name: object) -> bool:
        return name in self._sheets

    def __iter__(self) -> Iterator[str]:
        return iter(self._sheet_names)

    def create_sheet(self, title: str) -> Worksheet:
        """Add a new empty sheet."""
        if title in self._sheets:
            raise ValueError(f"Sheet '{title}' already exists")
        ws = Worksheet(self, title)
        self._sheet_names.append(title)
        self._sheets[title] = ws
        return ws

    # ------------------------------------------------------------------
    # Grid protocol
    # ------------------------------------------------------------------

    def get(self, sheet: str, row: int, col: int) -> Any:
        ws = self._sheets.get(sheet)
        if ws is None:
            return None
        return ws.get(row, col)

    def set(self, sheet: str, row: int, col: int, value: Any) -> None:
        ws = self._sheets.get(sheet)
        if ws is None:
            ws = self.create_sheet(sheet)
        ws.set(row, col, value)

    # ------------------------------------------------------------------
    # Context manager + cleanup
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop all sheets."""
        self._sheets.clear()
        self._sheet_names.clear()

    def __enter__(self) -> Workbook:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Workbook sheets={self._sheet_names}>"
