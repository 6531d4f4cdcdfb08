import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..logging import get_logger

_LOG = get_logger("normalize")

_LEADING_JUNK = re.compile(r"^[^\d.,-]+")
_TRAILING_JUNK = re.compile(r"[^\d.,]+$")


def normalize_decimal_separators(s: str) -> str:
    """Turn '14,70', '1.470,00', '1,470.00' into dot-decimal without thousands marks."""
    has_dot = "." in s
    has_comma = "," in s
    if has_dot and has_comma:
        if re.search(r",\d{1,2}$", s):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if has_comma:
        if re.search(r",\d{1,2}$", s):
            return s.replace(",", ".")
        return s.replace(",", "")
    return s


def parse_money(value: Any) -> Optional[Decimal]:
    """Best-effort Decimal for JSON numbers and currency-decorated strings.

    Handles 17.99, "17.99", "$17.99", "17,99 €", "USD 1,234.50". Returns None
    instead of raising for anything unparseable; booleans are rejected, and so
    are NaN and infinities (json.loads accepts both).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        result = Decimal(str(value))
        if not result.is_finite():
            _LOG.debug(f"Ignoring non-finite money value: {value!r}")
            return None
        return result
    if not isinstance(value, str):
        return None
    s = value.strip().replace(" ", "").replace("\u00a0", "")
    s = _LEADING_JUNK.sub("", s)
    s = _TRAILING_JUNK.sub("", s)
    if not s:
        return None
    s = normalize_decimal_separators(s)
    m = re.match(r"-?\d+(?:\.\d+)?", s)
    if not m:
        _LOG.debug(f"Unparseable money value: {value!r}")
        return None
    try:
        return Decimal(m.group(0))
    except InvalidOperation:
        return None


def parse_quantity(value: Any) -> Optional[int]:
    """Integer quantity >= 1, or None. Floats truncate (1.0 -> 1)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        qty = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        qty = int(value)
    elif isinstance(value, str) and value.strip():
        amount = parse_money(value)
        if amount is None:
            return None
        qty = int(amount)
    else:
        return None
    return qty if qty >= 1 else None


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse a strict YYYY-MM-DD date (time suffixes are tolerated)."""
    if not isinstance(value, str):
        return None
    v = value.strip()
    if not v:
        return None
    try:
        return datetime.strptime(v[:10], "%Y-%m-%d").date()
    except ValueError:
        _LOG.debug(f"Ignoring non-ISO date {value!r}")
        return None


def clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(value)
    return None


def clamp_unit(value: Decimal) -> Decimal:
    """Clamp to the closed interval [0, 1]; NaN counts as 0."""
    if value.is_nan():
        return Decimal("0")
    if value < 0:
        return Decimal("0")
    if value > 1:
        return Decimal("1")
    return value
