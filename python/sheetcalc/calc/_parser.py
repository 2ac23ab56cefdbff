"""Formula text analysis: regex-based reference extraction and arg splitting."""

from __future__ import annotations

import re
from typing import Any

from sheetcalc._utils import cell_key
from sheetcalc.calc._resolver import resolve_cell, resolve_range

# ---------------------------------------------------------------------------
# Regex patterns for reference extraction
# ---------------------------------------------------------------------------

# Sheet prefix: Sheet2! or 'My Sheet'! (repeated prefixes are matched so the
# resolver can reject them)
SHEET_PREFIX = r"(?:'[^']+'|[A-Za-z0-9_.]+)!"
CELL_TOKEN = r"[A-Za-z]+\d+"
# A reference must not run into a name, a call or another sheet prefix;
# "!=" after a reference is the inequality operator.
REF_END = r"(?![A-Za-z0-9_(]|!(?!=))"

REF_RE = re.compile(
    rf"(?<![A-Za-z0-9_.!'])((?:{SHEET_PREFIX})*)({CELL_TOKEN})"
    rf"(?:\s*:\s*({CELL_TOKEN}))?{REF_END}"
)

# Function names: SUM(...), NETWORKDAYS(...)
_FUNC_RE = re.compile(r"(?<![A-Za-z0-9_.!'])([A-Za-z_][A-Za-z0-9_.]*)\s*\(")

# Strings in formulas (to skip refs inside string literals)
_STRING_RE = re.compile(r'"[^"]*"')


def is_formula(value: Any) -> bool:
    """Formula content is text starting with ``=``."""
    return isinstance(value, str) and value.startswith("=")


def _strip_strings(formula: str) -> str:
    """Remove string literals so refs inside quotes aren't matched."""
    return _STRING_RE.sub('""', formula)


def _iter_tokens(formula: str):
    for m in REF_RE.finditer(_strip_strings(formula)):
        prefix, start, end = m.group(1), m.group(2), m.group(3)
        if end is None:
            yield False, f"{prefix}{start}"
        else:
            yield True, f"{prefix}{start}:{end}"


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(formula: str) -> list[str]:
    """Single-cell reference tokens as written (``"A1"``, ``"Sheet2!B3"``).

    Range endpoints are not included - use parse_range_references for those.
    """
    refs: list[str] = []
    for is_range, token in _iter_tokens(formula):
        if not is_range and token not in refs:
            refs.append(token)
    return refs


def parse_range_references(formula: str) -> list[str]:
    """Range tokens as written (``"A1:A5"``, ``"Data!B2:C9"``)."""
    ranges: list[str] = []
    for is_range, token in _iter_tokens(formula):
        if is_range and token not in ranges:
            ranges.append(token)
    return ranges


def parse_functions(formula: str) -> list[str]:
    """Extract all function names used in a formula."""
    clean = _strip_strings(formula)
    funcs: list[str] = []
    for m in _FUNC_RE.finditer(clean):
        name = m.group(1).upper()
        if name not in funcs:
            funcs.append(name)
    return funcs


# ---------------------------------------------------------------------------
# Canonical dependency keys
# ---------------------------------------------------------------------------


def expand_range(token: str, current_sheet: str, normalize: bool = True) -> list[str]:
    """Expand a range token into cell keys, row-major.

    ``expand_range("A1:B2", "Sheet1")`` ->
    ``["Sheet1!R0C0", "Sheet1!R0C1", "Sheet1!R1C0", "Sheet1!R1C1"]``.
    Invalid tokens expand to nothing.
    """
    resolved = resolve_range(token, current_sheet, normalize)
    if resolved is None:
        return []
    sheet, rows, cols = resolved
    return [cell_key(sheet, r, c) for r in rows for c in cols]


def all_references(formula: str, current_sheet: str, normalize: bool = True) -> list[str]:
    """Every cell key a formula reads, with ranges fully expanded."""
    keys: list[str] = []
    seen: set[str] = set()

    for is_range, token in _iter_tokens(formula):
        if is_range:
            expanded = expand_range(token, current_sheet, normalize)
        else:
            resolved = resolve_cell(token, current_sheet)
            expanded = [cell_key(*resolved)] if resolved is not None else []
        for key in expanded:
            if key not in seen:
                keys.append(key)
                seen.add(key)

    return keys


# ---------------------------------------------------------------------------
# Argument splitting
# ---------------------------------------------------------------------------


def split_args(args_str: str) -> list[str]:
    """Split on commas at depth 0, ignoring commas inside string literals."""
    args: list[str] = []
    depth = 0
    quote: str | None = None
    current = ""
    for ch in args_str:
        if quote is not None:
            if ch == quote:
                quote = None
            current += ch
        elif ch in ('"', "'"):
            quote = ch
            current += ch
        elif ch == '(':
            depth += 1
            current += ch
        elif ch == ')':
            depth -= 1
            current += ch
        elif ch == ',' and depth == 0:
            args.append(current.strip())
            current = ""
        else:
            current += ch
    if current.strip() or args:
        args.append(current.strip())
    return args
