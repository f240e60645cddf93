"""
Pure-Python fallback backend

Values are (coefficient, scale) pairs of Python ints meaning
coefficient * 10**-scale. All rounding goes through ledger_core.rounding.
"""

from dataclasses import dataclass

from ..errors import DivisionByZero
from ..rounding import RoundingMode, divide_rounded, rescale
from .base import DecimalBackend, check_precision, parse_numeric_string


@dataclass(frozen=True)
class ScaledDecimal:
    """Handle type of the pure backend; scale is never negative"""
    coefficient: int
    scale: int


def _align(a: ScaledDecimal, b: ScaledDecimal):
    scale = max(a.scale, b.scale)
    return (
        a.coefficient * 10 ** (scale - a.scale),
        b.coefficient * 10 ** (scale - b.scale),
        scale
    )


class PureDecimalBackend(DecimalBackend):
    """Scaled-integer arithmetic with no compiled dependencies"""

    name = "pure-python"
    accelerated = False

    def from_string(self, text: str) -> ScaledDecimal:
        parsed = parse_numeric_string(text)
        coefficient = int(parsed.digits)
        if parsed.negative:
            coefficient = -coefficient

        if parsed.exponent >= 0:
            return ScaledDecimal(coefficient * 10 ** parsed.exponent, 0)
        return ScaledDecimal(coefficient, -parsed.exponent)

    def to_string(self, handle: ScaledDecimal) -> str:
        sign = '-' if handle.coefficient < 0 else ''
        digits = str(abs(handle.coefficient))
        if handle.scale == 0:
            return sign + digits

        digits = digits.rjust(handle.scale + 1, '0')
        return f"{sign}{digits[:-handle.scale]}.{digits[-handle.scale:]}"

    def add(self, a: ScaledDecimal, b: ScaledDecimal) -> ScaledDecimal:
        left, right, scale = _align(a, b)
        return ScaledDecimal(left + right, scale)

    def subtract(self, a: ScaledDecimal, b: ScaledDecimal) -> ScaledDecimal:
        left, right, scale = _align(a, b)
        return ScaledDecimal(left - right, scale)

    def multiply(self, a: ScaledDecimal, b: ScaledDecimal) -> ScaledDecimal:
        return ScaledDecimal(a.coefficient * b.coefficient, a.scale + b.scale)

    def divide(self, a: ScaledDecimal, b: ScaledDecimal, precision: int,
               mode: RoundingMode) -> ScaledDecimal:
        check_precision(precision, "divide")
        if b.coefficient == 0:
            raise DivisionByZero("Division by zero", operation="divide")

        # a/b * 10**precision expressed over integers
        shift = b.scale - a.scale + precision
        if shift >= 0:
            numerator, denominator = a.coefficient * 10 ** shift, b.coefficient
        else:
            numerator, denominator = a.coefficient, b.coefficient * 10 ** -shift

        return ScaledDecimal(divide_rounded(numerator, denominator, mode), precision)

    def compare(self, a: ScaledDecimal, b: ScaledDecimal) -> int:
        left, right, _ = _align(a, b)
        return (left > right) - (left < right)

    def round(self, handle: ScaledDecimal, precision: int, mode: RoundingMode) -> ScaledDecimal:
        check_precision(precision, "round")
        return ScaledDecimal(rescale(handle.coefficient, handle.scale, precision, mode), precision)

    def sign(self, handle: ScaledDecimal) -> int:
        return (handle.coefficient > 0) - (handle.coefficient < 0)

    def abs(self, handle: ScaledDecimal) -> ScaledDecimal:
        return ScaledDecimal(abs(handle.coefficient), handle.scale)

    def negate(self, handle: ScaledDecimal) -> ScaledDecimal:
        return ScaledDecimal(-handle.coefficient, handle.scale)

    def scale(self, handle: ScaledDecimal) -> int:
        return handle.scale
