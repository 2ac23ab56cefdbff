"""Tests for the sheetcalc Workbook/Worksheet grid and address helpers."""

from __future__ import annotations

import pytest
from sheetcalc.calc import Grid

from sheetcalc import (
    Workbook,
    a1_to_rowcol,
    cell_key,
    column_index,
    column_letters,
    parse_cell_key,
    rowcol_to_a1,
)


class TestColumnIndex:
    @pytest.mark.parametrize(
        ("letters", "expected"),
        [("A", 0), ("Z", 25), ("AA", 26), ("AZ", 51), ("BA", 52), ("a", 0), ("zz", 701)],
    )
    def test_letters_to_index(self, letters: str, expected: int) -> None:
        assert column_index(letters) == expected

    @pytest.mark.parametrize("letters", ["", "A1", "1", "É", "A-B"])
    def test_invalid_letters(self, letters: str) -> None:
        with pytest.raises(ValueError, match="Invalid column letters"):
            column_index(letters)

    def test_letters_inverse(self) -> None:
        for idx in (0, 25, 26, 51, 701, 702, 16383):
            assert column_index(column_letters(idx)) == idx

    def test_negative_index_rejected(self) -> None:
        with pytest.raises(ValueError):
            column_letters(-1)


class TestA1:
    def test_a1_to_rowcol(self) -> None:
        assert a1_to_rowcol("A1") == (0, 0)
        assert a1_to_rowcol("B3") == (2, 1)
        assert a1_to_rowcol("aa10") == (9, 26)

    @pytest.mark.parametrize("ref", ["A0", "1A", "A", "", "Sheet1!A1"])
    def test_invalid_a1(self, ref: str) -> None:
        with pytest.raises(ValueError, match="Invalid cell reference"):
            a1_to_rowcol(ref)

    def test_rowcol_to_a1(self) -> None:
        assert rowcol_to_a1(0, 0) == "A1"
        assert rowcol_to_a1(2, 1) == "B3"
        assert rowcol_to_a1(9, 26) == "AA10"


class TestCellKey:
    def test_format(self) -> None:
        assert cell_key("Sheet1", 0, 1) == "Sheet1!R0C1"

    def test_parse(self) -> None:
        assert parse_cell_key("Data!R12C3") == ("Data", 12, 3)

    def test_sheet_name_with_spaces(self) -> None:
        key = cell_key("Income Statement", 4, 2)
        assert parse_cell_key(key) == ("Income Statement", 4, 2)

    def test_parse_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid cell key"):
            parse_cell_key("Sheet1!A1")


# ---------------------------------------------------------------------------
# Worksheet
# ---------------------------------------------------------------------------


class TestWorksheet:
    def test_get_missing_is_none(self) -> None:
        ws = Workbook().active
        assert ws is not None
        assert ws.get(0, 0) is None
        assert ws.get(100, 100) is None
        assert ws.get(-1, 0) is None

    def test_set_extends(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws.set(3, 2, 42)
        assert ws.get(3, 2) == 42
        assert ws.max_row == 4
        assert ws.max_column == 3
        assert ws.get(0, 0) is None

    def test_set_negative_rejected(self) -> None:
        ws = Workbook().active
        assert ws is not None
        with pytest.raises(ValueError, match="non-negative"):
            ws.set(-1, 0, 1)

    def test_a1_item_access(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws["B2"] = "x"
        assert ws["B2"] == "x"
        assert ws.get(1, 1) == "x"

    def test_append_rows(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws.append([1, 2, 3])
        ws.append([])
        ws.append(["a"])
        assert ws.to_rows() == [[1, 2, 3], [], ["a"]]

    def test_iter_rows_padded(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws.append([1, 2])
        ws.append([3])
        assert list(ws.iter_rows()) == [(1, 2), (3, None)]

    def test_iter_rows_with_coordinates(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws.append([1, 2])
        assert list(ws.iter_rows(values_only=False)) == [(("A1", 1), ("B1", 2))]

    def test_iter_cells_skips_empty(self) -> None:
        ws = Workbook().active
        assert ws is not None
        ws["A1"] = 1
        ws["C2"] = "=A1"
        assert list(ws.iter_cells()) == [(0, 0, 1), (1, 2, "=A1")]


# ---------------------------------------------------------------------------
# Workbook
# ---------------------------------------------------------------------------


class TestWorkbook:
    def test_default_sheet(self) -> None:
        wb = Workbook()
        assert wb.sheetnames == ["Sheet1"]
        assert wb.active is not None
        assert wb.active.title == "Sheet1"

    def test_is_grid(self) -> None:
        assert isinstance(Workbook(), Grid)

    def test_get_missing_sheet_is_none(self) -> None:
        wb = Workbook()
        assert wb.get("Nope", 0, 0) is None
        assert "Nope" not in wb

    def test_set_creates_sheet(self) -> None:
        wb = Workbook()
        wb.set("Data", 1, 1, 7)
        assert "Data" in wb
        assert wb.sheetnames == ["Sheet1", "Data"]
        assert wb.get("Data", 1, 1) == 7

    def test_getitem_missing_raises(self) -> None:
        with pytest.raises(KeyError):
            Workbook()["Missing"]

    def test_duplicate_sheet_rejected(self) -> None:
        wb = Workbook()
        with pytest.raises(ValueError, match="already exists"):
            wb.create_sheet("Sheet1")

    def test_dict_roundtrip(self) -> None:
        data = {"Sheet1": [[1, 2], ["=A1+B1"]], "Other": [["x"]]}
        wb = Workbook.from_dict(data)
        assert wb.sheetnames == ["Sheet1", "Other"]
        assert wb.to_dict() == data
        assert list(wb) == ["Sheet1", "Other"]

    def test_no_sheets(self) -> None:
        wb = Workbook(sheet_names=())
        assert wb.active is None

    def test_context_manager_closes(self) -> None:
        with Workbook() as wb:
            wb.set("Sheet1", 0, 0, 1)
        assert wb.sheetnames == []
