"""
Arithmetic Backend Interface

Every backend works on opaque handles and must produce byte-identical
canonical strings for the same inputs. Input parsing rules live here so
that both implementations accept exactly the same language of numbers.
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..errors import InvalidNumericFormat, NonFiniteNumber, OperationFailed
from ..rounding import RoundingMode


# ASCII digits only; no NaN/Infinity, no underscores, no locale digits
NUMERIC_PATTERN = re.compile(
    r'^(?P<sign>[+-]?)'
    r'(?:(?P<int>\d+)(?:\.(?P<frac>\d*))?|\.(?P<frac_only>\d+))'
    r'(?:[eE](?P<exp>[+-]?\d+))?$',
    re.ASCII
)

# Exponents are multiplied out into fixed-point form, so keep them bounded
MAX_EXPONENT = 1000


@dataclass(frozen=True)
class ParsedNumber:
    """A validated decimal literal: (-1)**negative * int(digits) * 10**exponent"""
    negative: bool
    digits: str
    exponent: int


def parse_numeric_string(text: Any, operation: str = "from_string") -> ParsedNumber:
    """
    Validate a decimal literal against the shared grammar.

    Raises:
        InvalidNumericFormat: If text is not a string or not a decimal literal
    """
    if not isinstance(text, str):
        raise InvalidNumericFormat(
            f"Expected a string, got {type(text).__name__}", operation=operation
        )

    match = NUMERIC_PATTERN.match(text.strip())
    if not match:
        raise InvalidNumericFormat(f"Invalid numeric format: {text!r}", operation=operation)

    if match.group('frac_only') is not None:
        integer, fraction = "", match.group('frac_only')
    else:
        integer, fraction = match.group('int'), match.group('frac') or ""

    exponent = int(match.group('exp') or 0)
    if abs(exponent) > MAX_EXPONENT:
        raise InvalidNumericFormat(
            f"Exponent out of range in {text!r} (limit {MAX_EXPONENT})", operation=operation
        )

    return ParsedNumber(
        negative=match.group('sign') == '-',
        digits=(integer + fraction) or "0",
        exponent=exponent - len(fraction)
    )


def number_to_string(value: Any, operation: str = "from_number") -> str:
    """
    Render an int, float or decimal.Decimal as a decimal literal.

    Floats use their shortest round-trip representation.

    Raises:
        NonFiniteNumber: For NaN and infinities
        InvalidNumericFormat: For unsupported types (including bool)
    """
    if isinstance(value, bool):
        raise InvalidNumericFormat("Booleans are not numbers", operation=operation)

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise NonFiniteNumber(
                f"Cannot create decimal from non-finite number: {value}", operation=operation
            )
        return repr(value)

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise NonFiniteNumber(
                f"Cannot create decimal from non-finite number: {value}", operation=operation
            )
        return str(value)

    raise InvalidNumericFormat(
        f"Invalid value type for decimal: {type(value).__name__}", operation=operation
    )


def check_precision(precision: Any, operation: str) -> int:
    """Precision must be a non-negative int"""
    if isinstance(precision, bool) or not isinstance(precision, int) or precision < 0:
        raise OperationFailed(
            f"Precision must be a non-negative integer, got {precision!r}", operation=operation
        )
    return precision


class DecimalBackend(ABC):
    """Abstract base class for arithmetic backends"""

    name = "abstract"
    accelerated = False

    @abstractmethod
    def from_string(self, text: str) -> Any:
        """Parse a decimal literal into a handle"""
        pass

    def from_number(self, value: Any) -> Any:
        """Create a handle from an int, finite float or decimal.Decimal"""
        return self.from_string(number_to_string(value))

    @abstractmethod
    def to_string(self, handle: Any) -> str:
        """Canonical fixed-point string, never exponent notation"""
        pass

    @abstractmethod
    def add(self, a: Any, b: Any) -> Any:
        pass

    @abstractmethod
    def subtract(self, a: Any, b: Any) -> Any:
        pass

    @abstractmethod
    def multiply(self, a: Any, b: Any) -> Any:
        pass

    @abstractmethod
    def divide(self, a: Any, b: Any, precision: int, mode: RoundingMode) -> Any:
        """Quotient rounded to exactly precision places; DivisionByZero if b is zero"""
        pass

    @abstractmethod
    def compare(self, a: Any, b: Any) -> int:
        """-1, 0 or 1"""
        pass

    @abstractmethod
    def round(self, handle: Any, precision: int, mode: RoundingMode) -> Any:
        """Value re-expressed with exactly precision places"""
        pass

    def to_fixed(self, handle: Any, dp: int, mode: RoundingMode) -> str:
        return self.to_string(self.round(handle, dp, mode))

    @abstractmethod
    def sign(self, handle: Any) -> int:
        """-1, 0 or 1"""
        pass

    def is_zero(self, handle: Any) -> bool:
        return self.sign(handle) == 0

    def is_positive(self, handle: Any) -> bool:
        return self.sign(handle) > 0

    def is_negative(self, handle: Any) -> bool:
        return self.sign(handle) < 0

    @abstractmethod
    def abs(self, handle: Any) -> Any:
        pass

    @abstractmethod
    def negate(self, handle: Any) -> Any:
        pass

    @abstractmethod
    def scale(self, handle: Any) -> int:
        """Number of digits after the decimal point"""
        pass

    def to_float(self, handle: Any) -> float:
        """Lossy conversion for display and statistics only"""
        return float(self.to_string(handle))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
