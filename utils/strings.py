"""String and value coercion utilities for the NY credits service.

These run once per upstream row, so they never raise: anything that cannot
be interpreted falls back to a safe default.
"""

import math

from utils.patterns import CURRENCY_SYMBOLS, INTEGRAL_FLOAT, LEADING_YEAR


def safe_float(val, default: float = 0.0) -> float:
    """Safely convert value to float with fallback default.

    Handles:
    - None, empty strings -> default
    - Numeric types -> float
    - Strings with currency symbols, whitespace, commas
    - NaN / infinity and invalid input -> default

    Args:
        val: Value to convert (any type)
        default: Value to return on failure (default: 0.0)

    Returns:
        float: Parsed finite value or default
    """
    if val is None or val == '' or isinstance(val, bool):
        return default
    if isinstance(val, (int, float)):
        result = float(val)
        return result if math.isfinite(result) else default

    try:
        s = str(val).strip()
        s = CURRENCY_SYMBOLS.sub('', s)
        s = s.replace(',', '').strip()
        result = float(s) if s else default
    except (ValueError, TypeError):
        return default
    return result if math.isfinite(result) else default


def coerce_year(val):
    """Parse a year value to int, keeping unparseable input as an opaque label.

    Only finite integral numbers and strings that start with a year become
    ints.  Anything else (fractions, inf, lists, objects) comes back as its
    string form so it can still be grouped and serialized.

    Example:
        2021 -> 2021, "2021" -> 2021, "2021.0" -> 2021,
        "2020-01-01T00:00:00.000" -> 2020,
        "FY 2021" -> "FY 2021", ["2020"] -> "['2020']", None -> None
    """
    if val is None:
        return None
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    if isinstance(val, float) and math.isfinite(val) and val.is_integer():
        return int(val)

    s = str(val).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        pass
    if INTEGRAL_FLOAT.match(s):
        return int(s.split('.')[0])
    match = LEADING_YEAR.match(s)
    if match:
        return int(match.group(1))
    return s


def clean_label(val) -> str | None:
    """Return a stripped string label, or None for missing/blank values."""
    if val is None:
        return None
    s = str(val).strip()
    return s or None
