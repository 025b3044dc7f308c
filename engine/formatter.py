"""
SciCalc: Result formatting.

Rounding, display strings and the fraction hint shown above the result.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

import numpy as np

MAX_PRECISION = 8
FRACTION_TOLERANCE = 1.0e-9
FRACTION_MAX_MAGNITUDE = 1_000_000_000
FRACTION_MAX_DENOMINATOR = 10_000

# Below / above these magnitudes results switch to exponent notation.
_EXP_LOW = 1e-6
_EXP_HIGH = 1e21
# Enough significant digits to quantize anything below _EXP_HIGH to 8 places.
_ROUNDING_DIGITS = 40


@dataclass(frozen=True)
class FormatSettings:
    """Formatting options threaded into every evaluation.

    ``precision`` is the number of decimal places (0 to 8) or None for no
    rounding.
    """
    precision: Optional[int] = None

    @classmethod
    def from_setting(cls, raw) -> "FormatSettings":
        """Build from a persisted value (``"None"``, ``"2"``, ``2`` …)."""
        if raw is None or isinstance(raw, bool):
            return cls()
        try:
            precision = int(str(raw).strip())
        except ValueError:
            return cls()
        if 0 <= precision <= MAX_PRECISION:
            return cls(precision=precision)
        return cls()

    def as_setting(self) -> str:
        return "None" if self.precision is None else str(self.precision)


def round_result(value: float, precision: Optional[int]) -> float:
    """Round *value* to *precision* decimal places (fixed-point).

    Ties on the exact binary value go away from zero, so ``2.5`` becomes 3
    and ``1.005`` (stored just below) stays ``1.00``.  Magnitudes of 1e21
    and up are returned as they are.
    """
    if precision is None or not math.isfinite(value) or abs(value) >= _EXP_HIGH:
        return value
    with localcontext() as ctx:
        ctx.prec = _ROUNDING_DIGITS
        rounded = Decimal(value).quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)
    return float(rounded)


def format_number(value: float) -> str:
    """Shortest round-trip string: ``110``, ``0.5``, ``1e+21``, ``1e-7``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if _EXP_LOW <= abs(value) < _EXP_HIGH:
        return np.format_float_positional(value, trim="-")
    return np.format_float_scientific(value, trim="-", exp_digits=1)


def decimal_to_fraction(value: float) -> Optional[str]:
    """Best rational approximation ``p/q`` of *value*, or None.

    Continued-fraction expansion until the convergent is within
    ``1e-9 * |value|``.  Integers, magnitudes above 1e9, non-finite values
    and denominators above 10000 give None.
    """
    if not math.isfinite(value) or abs(value) > FRACTION_MAX_MAGNITUDE or value % 1 == 0:
        return None
    sign = "-" if value < 0 else ""
    target = abs(value)

    h1, h2, k1, k2 = 1, 0, 0, 1
    b = target
    while True:
        a = math.floor(b)
        h1, h2 = a * h1 + h2, h1
        k1, k2 = a * k1 + k2, k1
        if abs(target - h1 / k1) <= target * FRACTION_TOLERANCE:
            break
        if k1 > FRACTION_MAX_DENOMINATOR or b == a:
            break
        b = 1 / (b - a)

    if k1 > FRACTION_MAX_DENOMINATOR:
        return None
    return f"{sign}{h1}/{k1}"


def format_result(value: float, settings: FormatSettings):
    """Return ``(rounded_value, display_string, fraction_hint)``."""
    rounded = round_result(value, settings.precision)
    return rounded, format_number(rounded), decimal_to_fraction(rounded)
