"""Grid protocol and recalculation result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Grid(Protocol):
    """Sheet name -> row/column value store read and written by the engine."""

    def get(self, sheet: str, row: int, col: int) -> Any:
        """Return the stored value, or ``None`` for a missing sheet/cell.

        Must never raise.
        """
        ...

    def set(self, sheet: str, row: int, col: int, value: Any) -> None:
        """Store a value, creating the sheet and extending rows as needed."""
        ...


@dataclass(frozen=True)
class CellDelta:
    """A single cell's value change from recalculation."""

    cell_key: str  # canonical "SheetName!R0C0"
    old_value: Any
    new_value: Any
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one cell edit and its cascade."""

    edited: str  # cell key that was written
    deltas: tuple[CellDelta, ...]  # cells whose value changed
    evaluated_cells: int = 0  # formula cells evaluated in the cascade
    total_formula_cells: int = 0
    max_chain_depth: int = 0  # longest dependency chain from the edited cell
    cyclic: frozenset[str] = field(default_factory=frozenset)

    @property
    def changed(self) -> dict[str, Any]:
        """``{cell_key: new_value}`` for every delta."""
        return {d.cell_key: d.new_value for d in self.deltas}

    @property
    def propagated_cells(self) -> int:
        """Formula cells (other than the edited one) whose value changed."""
        return sum(1 for d in self.deltas if d.cell_key != self.edited)
