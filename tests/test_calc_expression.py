"""Tests for the sheetcalc.calc expression tokenizer, parser and tree walker."""

from __future__ import annotations

from typing import Any

import pytest
from sheetcalc.calc._expression import (
    BinaryOp,
    Call,
    CellRef,
    FormulaSyntaxError,
    Number,
    RangeRef,
    String,
    UnaryOp,
    evaluate_tree,
    find_matching_paren,
    parse_expression,
    tokenize,
)
from sheetcalc.calc._functions import CellError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _eval(text: str, cells: dict[str, Any] | None = None) -> Any:
    cells = cells or {}
    return evaluate_tree(
        parse_expression(text),
        lambda token: cells.get(token),
        lambda name, args: (name, args),
    )


class TestTokenize:
    def test_kinds(self) -> None:
        kinds = [t.kind for t in tokenize('A1+SUM(B1:B3)*"x">=Data!C2:D4')]
        assert kinds == ["REF", "OP", "CALL", "OP", "STRING", "OP", "RANGE", "END"]

    def test_call_carries_raw_args(self) -> None:
        tok = tokenize('IF(A1>0,"a,b",MAX(1,2))')[0]
        assert tok.kind == "CALL"
        assert tok.value == ("IF", 'A1>0,"a,b",MAX(1,2)')

    def test_sheet_qualified_ref(self) -> None:
        tok = tokenize("'My Sheet'!B2")[0]
        assert (tok.kind, tok.value) == ("REF", "'My Sheet'!B2")

    def test_single_quoted_string(self) -> None:
        tok = tokenize("'abc'")[0]
        assert (tok.kind, tok.value) == ("STRING", "abc")

    def test_booleans(self) -> None:
        assert [t.value for t in tokenize("TRUE")[:1]] == [True]
        assert [t.value for t in tokenize("false")[:1]] == [False]

    def test_inequality_after_ref(self) -> None:
        values = [t.value for t in tokenize("A1!=B1")]
        assert values == ["A1", "!=", "B1", None]

    def test_unknown_name(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Unknown name"):
            tokenize("foo+1")

    def test_unexpected_character(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Unexpected character"):
            tokenize("1#2")

    def test_unbalanced_call(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Unbalanced"):
            tokenize("SUM(1,2")

    def test_find_matching_paren(self) -> None:
        assert find_matching_paren('(a,")",(b))', 0) == 10
        assert find_matching_paren("(a", 0) == -1


class TestParse:
    def test_precedence(self) -> None:
        assert parse_expression("1+2*3") == BinaryOp(
            "+", Number(1), BinaryOp("*", Number(2), Number(3))
        )

    def test_unary_binds_looser_than_power(self) -> None:
        assert parse_expression("-2^2") == UnaryOp("-", BinaryOp("^", Number(2), Number(2)))

    def test_numbers(self) -> None:
        assert parse_expression("10") == Number(10)
        assert parse_expression("2.5") == Number(2.5)
        assert parse_expression(".5") == Number(0.5)
        assert parse_expression("1e3") == Number(1000.0)

    def test_leaves(self) -> None:
        assert parse_expression("A1") == CellRef("A1")
        assert parse_expression("A1:B2") == RangeRef("A1:B2")
        assert parse_expression('"hi"') == String("hi")
        assert parse_expression("sum(1, 2)") == Call("SUM", "1, 2")

    @pytest.mark.parametrize("text", ["1+", "(1", "1 2", "", ")", "*3"])
    def test_syntax_errors(self, text: str) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse_expression(text)

    def test_syntax_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_expression("1+")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class TestEvaluateArithmetic:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1+2*3", 7),
            ("(1+2)*3", 9),
            ("10-4-3", 3),
            ("7/2", 3.5),
            ("7%3", 1),
            ("2^10", 1024),
            ("2^3^2", 512),
            ("-2^2", -4),
            ("--3", 3),
            ("TRUE+1", 2),
        ],
    )
    def test_operators(self, text: str, expected: Any) -> None:
        assert _eval(text) == expected

    def test_divide_by_zero_raises(self) -> None:
        with pytest.raises(ZeroDivisionError):
            _eval("1/0")

    def test_text_operand_raises(self) -> None:
        with pytest.raises(TypeError):
            _eval('"a"+1')

    def test_range_in_scalar_position_raises(self) -> None:
        with pytest.raises(ValueError, match="single value"):
            _eval("A1:A3+1")


class TestEvaluateComparison:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1<2", True),
            ("2<=2", True),
            ("3>4", False),
            ("1=1", True),
            ("1==1", True),
            ("1<>2", True),
            ("1!=1", False),
            ('"10">9', True),
            ("'abc'=\"ABC\"", True),
            ('"a"<"b"', True),
        ],
    )
    def test_comparisons(self, text: str, expected: bool) -> None:
        assert _eval(text) is expected

    def test_comparison_binds_loosest(self) -> None:
        assert _eval("1+1=2") is True


class TestEvaluateReferences:
    def test_cell_values_coerced(self) -> None:
        assert _eval("A1*2", {"A1": "5"}) == 10
        assert _eval("A1+1", {"A1": "abc"}) == 1
        assert _eval("A1+1") == 1

    def test_errors_propagate(self) -> None:
        assert _eval("A1+1", {"A1": CellError.CYCLE}) is CellError.CYCLE
        assert _eval("-A1", {"A1": CellError.ERROR}) is CellError.ERROR
        assert _eval("A1>1", {"A1": CellError.UNIT}) is CellError.UNIT

    def test_call_dispatch(self) -> None:
        assert _eval("max(A1, 2)") == ("MAX", "A1, 2")
