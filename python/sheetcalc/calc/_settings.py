"""Engine configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CalcSettings:
    """Options for a :class:`~sheetcalc.calc.CalcSession`.

    ``default_sheet`` names the first sheet of a workbook the session
    creates itself. ``normalize_ranges`` makes ``B5:A1`` cover the same
    cells as ``A1:B5``; when off, a reversed range is empty. ``tolerance``
    is the numeric threshold below which a recomputed value is not
    reported as a delta.
    """

    default_sheet: str = "Sheet1"
    normalize_ranges: bool = True
    tolerance: float = 1e-10

    def __post_init__(self) -> None:
        if not self.default_sheet:
            raise ValueError("default_sheet must be a non-empty sheet name")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
