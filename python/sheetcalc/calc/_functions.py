"""Error sentinels, value coercion and the builtin function library."""

from __future__ import annotations

import calendar
import datetime
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

import numpy as np

# ---------------------------------------------------------------------------
# CellError: error sentinels stored as cell values
# ---------------------------------------------------------------------------


class CellError:
    """Error value produced by a formula instead of a result.

    Use ``CellError.of(code)`` to get the cached singleton for a code.
    Errors compare equal to their code string (``CellError.ERROR == "#ERROR"``).
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    ERROR: CellError
    FUNC: CellError
    UNIT: CellError
    CYCLE: CellError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


CellError.ERROR = CellError.of("#ERROR")
CellError.FUNC = CellError.of("#FUNC?")
CellError.UNIT = CellError.of("#UNIT!")
CellError.CYCLE = CellError.of("#CYCLE!")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first CellError found in *values*, or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
    return None


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def parse_number(value: Any) -> int | float | None:
    """Strict numeric parse: the number *value* represents, else None.

    Booleans, empty cells, errors and non-numeric text give None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
        return num if math.isfinite(num) else None
    return None


def to_number(value: Any) -> int | float:
    """Arithmetic coercion: booleans are 1/0, anything non-numeric is 0."""
    if isinstance(value, bool):
        return int(value)
    num = parse_number(value)
    return 0 if num is None else num


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    return bool(value)


def flatten(values: list[Any]) -> list[Any]:
    """Flatten range arguments (lists) into a single list of cell values."""
    result: list[Any] = []
    for v in values:
        if isinstance(v, (list, tuple)):
            result.extend(flatten(list(v)))
        else:
            result.append(v)
    return result


def _numbers(args: list[Any]) -> list[int | float]:
    """Values that parse as numbers; everything else is dropped."""
    nums = []
    for v in flatten(args):
        num = parse_number(v)
        if num is not None:
            nums.append(num)
    return nums


def _arity(name: str, args: list[Any], low: int, high: int | None = None) -> None:
    high = low if high is None else high
    if not low <= len(args) <= high:
        if low == high:
            raise ValueError(f"{name} requires exactly {low} argument(s)")
        raise ValueError(f"{name} requires {low} to {high} arguments")


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> float:
    return sum((to_number(v) for v in flatten(args)), 0.0)


def _builtin_average(args: list[Any]) -> float:
    nums = _numbers(args)
    if not nums:
        return 0.0
    return sum(nums) / len(nums)


def _builtin_min(args: list[Any]) -> float:
    nums = _numbers(args)
    if not nums:
        return 0.0
    return min(nums)


def _builtin_max(args: list[Any]) -> float:
    nums = _numbers(args)
    if not nums:
        return 0.0
    return max(nums)


def _builtin_count(args: list[Any]) -> int:
    """COUNT - counts entries that parse as numbers."""
    return len(_numbers(args))


def _builtin_counta(args: list[Any]) -> int:
    """COUNTA - counts non-empty entries."""
    return sum(1 for v in flatten(args) if v is not None and v != "")


def _builtin_product(args: list[Any]) -> float:
    """PRODUCT - non-numeric entries count as 1."""
    factors = []
    for v in flatten(args):
        num = parse_number(v)
        factors.append(1 if num is None else num)
    return float(math.prod(factors))


# ---------------------------------------------------------------------------
# Scalar math
# ---------------------------------------------------------------------------


def _builtin_abs(args: list[Any]) -> int | float:
    _arity("ABS", args, 1)
    return abs(to_number(args[0]))


def _builtin_round(args: list[Any]) -> float:
    """ROUND(x, digits). Rounds half away from zero."""
    _arity("ROUND", args, 1, 2)
    digits = int(to_number(args[1])) if len(args) > 1 else 0
    value = Decimal(str(to_number(args[0])))
    return float(value.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP))


def _builtin_mod(args: list[Any]) -> int | float:
    _arity("MOD", args, 2)
    return to_number(args[0]) % to_number(args[1])


def _builtin_difference(args: list[Any]) -> int | float:
    _arity("DIFFERENCE", args, 2)
    return to_number(args[0]) - to_number(args[1])


def power(base: int | float, exponent: int | float) -> float:
    """``base ** exponent`` in floating point, restricted to real results.

    Overflow raises OverflowError instead of building an unbounded integer.
    """
    result = float(base) ** exponent
    if isinstance(result, complex):
        raise ValueError(f"{base} ** {exponent} has no real value")
    return result


def _builtin_power(args: list[Any]) -> int | float:
    _arity("POWER", args, 2)
    return power(to_number(args[0]), to_number(args[1]))


# ---------------------------------------------------------------------------
# Logic
# ---------------------------------------------------------------------------


def _builtin_if(raw_args: list[str], eval_fn: Callable[[str], Any]) -> Any:
    """IF(cond, then, [else]). Only the selected branch is evaluated."""
    _arity("IF", raw_args, 2, 3)
    condition = eval_fn(raw_args[0])
    if is_error(condition):
        return condition
    if is_truthy(condition):
        branch = eval_fn(raw_args[1])
    elif len(raw_args) > 2:
        branch = eval_fn(raw_args[2])
    else:
        return False
    # an empty cell as the selected branch reads as 0
    return 0 if branch is None else branch


_builtin_if._lazy_args = True  # type: ignore[attr-defined]


def _builtin_and(args: list[Any]) -> bool:
    return all(is_truthy(v) for v in flatten(args) if v is not None)


def _builtin_or(args: list[Any]) -> bool:
    return any(is_truthy(v) for v in flatten(args) if v is not None)


# ---------------------------------------------------------------------------
# Date & time. Dates are exchanged as ISO-8601 strings.
# ---------------------------------------------------------------------------


def to_date(value: Any) -> datetime.date:
    """Interpret a date argument: date objects or ISO-8601 text."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return datetime.datetime.fromisoformat(text).date()
    raise ValueError(f"Not a date: {value!r}")


def _shift_months(d: datetime.date, months: int) -> datetime.date:
    idx = d.month - 1 + months
    year, month = d.year + idx // 12, idx % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return datetime.date(year, month, day)


def _builtin_today(args: list[Any]) -> str:
    return datetime.date.today().isoformat()


def _builtin_now(args: list[Any]) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _builtin_date(args: list[Any]) -> str:
    """DATE(year, month, day).

    Month and day overflow roll forward: DATE(2020,14,1) = 2021-02-01 and
    DATE(2024,3,0) = 2024-02-29. Years 0-99 mean 1900-1999.
    """
    _arity("DATE", args, 3)
    year = int(to_number(args[0]))
    month = int(to_number(args[1]))
    day = int(to_number(args[2]))
    if 0 <= year <= 99:
        year += 1900
    month_index = month - 1
    first = datetime.date(year + month_index // 12, month_index % 12 + 1, 1)
    return (first + datetime.timedelta(days=day - 1)).isoformat()


def _builtin_datedif(args: list[Any]) -> int | CellError:
    """DATEDIF(start, end, unit) with unit "d", "m" or "y"."""
    _arity("DATEDIF", args, 2, 3)
    start, end = to_date(args[0]), to_date(args[1])
    unit = str(args[2]).strip().strip("'\"").lower() if len(args) > 2 else ""
    if unit == "d":
        return (end - start).days
    if unit == "m":
        return (end.year - start.year) * 12 + end.month - start.month
    if unit == "y":
        return end.year - start.year
    return CellError.UNIT


def _builtin_edate(args: list[Any]) -> str:
    """EDATE(start, months). Day is clamped to the target month's length."""
    _arity("EDATE", args, 2)
    return _shift_months(to_date(args[0]), int(to_number(args[1]))).isoformat()


def _builtin_networkdays(args: list[Any]) -> int:
    """NETWORKDAYS(start, end, [holidays...]). Mon-Fri days, both ends inclusive."""
    if len(args) < 2:
        raise ValueError("NETWORKDAYS requires at least 2 arguments")
    start, end = to_date(args[0]), to_date(args[1])
    if start > end:
        return 0
    holidays = np.array(
        [to_date(h) for h in flatten(args[2:]) if h is not None and h != ""],
        dtype="datetime64[D]",
    )
    return int(np.busday_count(
        np.datetime64(start, "D"),
        np.datetime64(end + datetime.timedelta(days=1), "D"),
        holidays=holidays,
    ))


def _builtin_weekday(args: list[Any]) -> int:
    """WEEKDAY(date, [return_type]).

    The base day number is 0 for Sunday through 6 for Saturday. Type 1 maps
    Sunday to 7, type 2 returns the base number, other types add one.
    """
    _arity("WEEKDAY", args, 1, 2)
    day = (to_date(args[0]).weekday() + 1) % 7
    return_type = int(to_number(args[1])) if len(args) > 1 and args[1] is not None else 1
    if return_type == 1:
        return 7 if day == 0 else day
    if return_type == 2:
        return day
    return day + 1


# ---------------------------------------------------------------------------
# Catalogue and registry
# ---------------------------------------------------------------------------

SUPPORTED_FUNCTIONS: dict[str, str] = {
    # Math (7)
    "SUM": "math",
    "PRODUCT": "math",
    "ABS": "math",
    "ROUND": "math",
    "MOD": "math",
    "DIFFERENCE": "math",
    "POWER": "math",
    # Statistical (5)
    "AVERAGE": "statistical",
    "MIN": "statistical",
    "MAX": "statistical",
    "COUNT": "statistical",
    "COUNTA": "statistical",
    # Logic (3)
    "IF": "logic",
    "AND": "logic",
    "OR": "logic",
    # Date (7)
    "TODAY": "date",
    "NOW": "date",
    "DATE": "date",
    "DATEDIF": "date",
    "EDATE": "date",
    "NETWORKDAYS": "date",
    "WEEKDAY": "date",
}


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the builtin library."""
    return func_name.upper() in SUPPORTED_FUNCTIONS


_BUILTINS: dict[str, Callable[..., Any]] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "COUNT": _builtin_count,
    "COUNTA": _builtin_counta,
    "PRODUCT": _builtin_product,
    "ABS": _builtin_abs,
    "ROUND": _builtin_round,
    "MOD": _builtin_mod,
    "DIFFERENCE": _builtin_difference,
    "POWER": _builtin_power,
    "IF": _builtin_if,
    "AND": _builtin_and,
    "OR": _builtin_or,
    "TODAY": _builtin_today,
    "NOW": _builtin_now,
    "DATE": _builtin_date,
    "DATEDIF": _builtin_datedif,
    "EDATE": _builtin_edate,
    "NETWORKDAYS": _builtin_networkdays,
    "WEEKDAY": _builtin_weekday,
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions. A
    function receives the list of resolved argument values; one marked with
    ``_lazy_args = True`` receives the raw argument strings and an
    evaluation callback instead.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
