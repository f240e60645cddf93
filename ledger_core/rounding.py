"""
Rounding Policy

Six rounding modes over a (value, precision) pair, expressed as pure
integer functions so that every backend can share one definition of
what a rounded result is. HALF_EVEN (banker's rounding) is the default
for GAAP compliance.
"""

from enum import Enum
from typing import Union


class RoundingMode(Enum):
    """Rounding modes; numeric values are stable and used on the wire"""
    HALF_EVEN = 0   # Banker's rounding (GAAP-compliant)
    HALF_UP = 1     # Ties away from zero
    UP = 2          # Always away from zero
    DOWN = 3        # Always toward zero
    CEILING = 4     # Toward positive infinity
    FLOOR = 5       # Toward negative infinity

    @property
    def decimal_name(self) -> str:
        """Name of the equivalent rounding constant in the decimal module"""
        return f"ROUND_{self.name}"

    @classmethod
    def parse(cls, value: Union["RoundingMode", int, str]) -> "RoundingMode":
        """
        Resolve a rounding mode from an enum member, its integer code, or a
        name such as "HALF_EVEN", "half_even" or "ROUND_HALF_EVEN".

        Raises:
            ValueError: If the value does not name a rounding mode
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid rounding mode: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ValueError(f"Invalid rounding mode: {value!r}") from None
        if isinstance(value, str):
            name = value.strip().upper()
            if name.startswith("ROUND_"):
                name = name[len("ROUND_"):]
            try:
                return cls[name]
            except KeyError:
                raise ValueError(f"Invalid rounding mode: {value!r}") from None
        raise ValueError(f"Invalid rounding mode: {value!r}")


DEFAULT_ROUNDING = RoundingMode.HALF_EVEN


def _rounds_away(quotient: int, remainder: int, divisor: int,
                 negative: bool, mode: RoundingMode) -> bool:
    """
    Decide whether a truncated quotient magnitude must be bumped by one.

    quotient, remainder and divisor are magnitudes and remainder is non-zero.
    """
    if mode is RoundingMode.DOWN:
        return False
    if mode is RoundingMode.UP:
        return True
    if mode is RoundingMode.CEILING:
        return not negative
    if mode is RoundingMode.FLOOR:
        return negative

    twice = remainder * 2
    if twice != divisor:
        return twice > divisor
    if mode is RoundingMode.HALF_UP:
        return True
    # HALF_EVEN: tie goes to the even neighbour
    return quotient % 2 == 1


def divide_rounded(numerator: int, denominator: int, mode: RoundingMode = DEFAULT_ROUNDING) -> int:
    """
    Integer division of numerator by denominator rounded with mode.

    Raises:
        ZeroDivisionError: If denominator is zero
    """
    if denominator == 0:
        raise ZeroDivisionError("integer division by zero")

    negative = (numerator < 0) != (denominator < 0)
    divisor = abs(denominator)
    quotient, remainder = divmod(abs(numerator), divisor)

    if remainder and _rounds_away(quotient, remainder, divisor, negative, mode):
        quotient += 1

    return -quotient if negative else quotient


def rescale(coefficient: int, from_scale: int, to_scale: int,
            mode: RoundingMode = DEFAULT_ROUNDING) -> int:
    """
    Re-express coefficient * 10**-from_scale with to_scale decimal places.

    Widening the scale is exact; narrowing it rounds with mode.
    """
    if to_scale >= from_scale:
        return coefficient * 10 ** (to_scale - from_scale)
    return divide_rounded(coefficient, 10 ** (from_scale - to_scale), mode)
