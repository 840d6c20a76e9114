"""
Numeric input coercion and unit conversion
"""

import math
import re
from typing import Any

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

LBS_TO_KG = 0.453592
INCHES_TO_CM = 2.54
CREATININE_UMOL_PER_MG_DL = 88.4


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Parse a number the way form input is read: leading numeric prefix wins,
    anything unparseable (None, "", "abc", NaN, inf) becomes `default`.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return default
        number = float(match.group(0))

    if math.isnan(number) or math.isinf(number):
        return default
    return number


def non_negative(value: Any) -> float:
    return max(safe_float(value), 0.0)


def to_kg(weight: Any, unit: str = "kg") -> float:
    w = safe_float(weight)
    return w * LBS_TO_KG if unit == "lbs" else w


def to_cm(height: Any, unit: str = "cm") -> float:
    h = safe_float(height)
    return h * INCHES_TO_CM if unit == "inches" else h


def creatinine_to_mg_dl(creatinine: Any, unit: str = "mg/dL") -> float:
    c = safe_float(creatinine)
    return c / CREATININE_UMOL_PER_MG_DL if unit in ("μmol/L", "umol/L", "µmol/L") else c


def round_half_up(value: float, decimals: int = 1) -> float:
    """Round half away from zero for non-negative doses (0.05 -> 0.1)"""
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor
