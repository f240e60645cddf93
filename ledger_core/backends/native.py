"""
Accelerated backend on CPython's compiled decimal module (libmpdec)

Importing this module fails on interpreters that do not ship the
compiled _decimal extension; the Backend Loader treats that as a
reason to fall back, never as an error.
"""

import _decimal as mpdec

from ..errors import DivisionByZero
from ..rounding import RoundingMode
from .base import DecimalBackend, check_precision, parse_numeric_string


_TRAPS = [mpdec.InvalidOperation, mpdec.DivisionByZero, mpdec.Overflow]

# Exact context: add/subtract/multiply/quantize never round under it
_EXACT = mpdec.Context(
    prec=mpdec.MAX_PREC,
    Emax=mpdec.MAX_EMAX,
    Emin=mpdec.MIN_EMIN,
    rounding=mpdec.ROUND_HALF_EVEN,
    traps=_TRAPS
)

_ONE = mpdec.Decimal(1)


def _quantum(precision: int):
    return mpdec.Decimal((0, (1,), -precision))


def _finish(value):
    # Canonical form has no negative zero
    if value.is_zero() and value.is_signed():
        return value.copy_abs()
    return value


class NativeDecimalBackend(DecimalBackend):
    """Backend delegating arithmetic and rounding to libmpdec"""

    name = "libmpdec"
    accelerated = True

    def __init__(self):
        self.libmpdec_version = getattr(mpdec, "__libmpdec_version__", None)

    def from_string(self, text: str):
        parse_numeric_string(text)
        value = mpdec.Decimal(text.strip())
        if value.as_tuple().exponent > 0:
            value = value.quantize(_ONE, context=_EXACT)
        return _finish(value)

    def to_string(self, handle) -> str:
        return format(handle, 'f')

    def add(self, a, b):
        return _finish(_EXACT.add(a, b))

    def subtract(self, a, b):
        return _finish(_EXACT.subtract(a, b))

    def multiply(self, a, b):
        return _finish(_EXACT.multiply(a, b))

    def divide(self, a, b, precision: int, mode: RoundingMode):
        check_precision(precision, "divide")
        if b.is_zero():
            raise DivisionByZero("Division by zero", operation="divide")

        # Enough significant digits to reach one place past the target,
        # rounded with ROUND_05UP so the final quantize cannot double-round.
        digits = max(1, a.adjusted() - b.adjusted() + precision + 2)
        context = mpdec.Context(
            prec=digits,
            Emax=mpdec.MAX_EMAX,
            Emin=mpdec.MIN_EMIN,
            rounding=mpdec.ROUND_05UP,
            traps=_TRAPS
        )
        return self.round(context.divide(a, b), precision, mode)

    def compare(self, a, b) -> int:
        return (a > b) - (a < b)

    def round(self, handle, precision: int, mode: RoundingMode):
        check_precision(precision, "round")
        rounding = getattr(mpdec, mode.decimal_name)
        return _finish(handle.quantize(_quantum(precision), rounding=rounding, context=_EXACT))

    def sign(self, handle) -> int:
        if handle.is_zero():
            return 0
        return -1 if handle.is_signed() else 1

    def abs(self, handle):
        return handle.copy_abs()

    def negate(self, handle):
        return _finish(handle.copy_negate())

    def scale(self, handle) -> int:
        return -handle.as_tuple().exponent
