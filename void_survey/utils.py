from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation


_LEADING_FLOAT = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


def parse_num(val) -> float:
    """Leading-number parse; anything unparseable is 0.0."""
    if isinstance(val, bool):
        return float(val)
    if isinstance(val, (int, float, Decimal)):
        x = float(val)
        return x if x == x and x not in (float("inf"), float("-inf")) else 0.0
    if val is None:
        return 0.0
    m = _LEADING_FLOAT.match(str(val))
    if not m:
        return 0.0
    try:
        return float(m.group(0))
    except ValueError:
        return 0.0


def parse_qty(val) -> int:
    if isinstance(val, (int, float, Decimal)) and not isinstance(val, bool):
        x = parse_num(val)
        return int(x)
    if val is None:
        return 0
    m = _LEADING_INT.match(str(val))
    return int(m.group(0)) if m else 0


def to_decimal(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None or x == "":
        return Decimal(0)
    try:
        return Decimal(str(x))
    except InvalidOperation:
        return Decimal(str(parse_num(x)))


def two_places(amount) -> str:
    val = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{val:.2f}"


def money(amount, symbol: str = "£", places: int = 2) -> str:
    q = Decimal(10) ** -places
    val = to_decimal(amount).quantize(q, rounding=ROUND_HALF_UP)
    parts = f"{val:.{places}f}".split(".")
    whole = parts[0]
    frac = parts[1] if len(parts) > 1 else "00"
    sign = ""
    if whole.startswith("-"):
        sign = "-"
        whole = whole[1:]
    whole_with_commas = "{:,}".format(int(whole))
    return f"{sign}{symbol}{whole_with_commas}.{frac}"


def yes_no(flag) -> str:
    return "Yes" if flag else "No"


def truthy(val) -> bool:
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    if isinstance(val, (int, float)):
        return val != 0
    return str(val).strip().lower() in {"yes", "y", "true", "1", "x"}


def is_blank(val) -> bool:
    return val is None or str(val).strip() == ""


def cell_text(val) -> str:
    """Render a cell value the way the form shows it: integral floats lose '.0'."""
    if val is None:
        return ""
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()
