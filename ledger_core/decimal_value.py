"""
Decimal Value

Immutable arbitrary-precision decimal number for monetary calculations.
Every operation returns a new value; nothing is ever mutated in place.
Arithmetic is delegated to whichever backend the Backend Loader selected,
so call sites never need to know which one is active.

NEVER uses float for monetary values: to_float() exists for display and
statistics only.
"""

from decimal import Decimal
from typing import Any, Optional, Union

from .backends.base import DecimalBackend, number_to_string
from .config import get_config
from .errors import FinancialError, InvalidNumericFormat, OperationFailed
from .loader import get_backend
from .rounding import DEFAULT_ROUNDING, RoundingMode

Numeric = Union["DecimalValue", str, int, float, Decimal]


def _resolve_rounding(rounding: Any, operation: str) -> RoundingMode:
    try:
        return RoundingMode.parse(rounding)
    except ValueError as e:
        raise OperationFailed(str(e), operation=operation) from e


def _is_operand(value: Any) -> bool:
    """Types accepted by operators and comparisons; floats and bools are not"""
    return isinstance(value, (DecimalValue, int, Decimal, str)) and not isinstance(value, bool)


class DecimalValue:
    """
    Immutable decimal number backed by the active arithmetic backend.

    str() gives the canonical fixed-point form, which is also the storage
    format: no exponent notation and never a negative zero.
    """

    __slots__ = ("_handle", "_backend")

    def __init__(self, value: Numeric = 0, backend: Optional[DecimalBackend] = None):
        backend = backend or get_backend()

        if isinstance(value, DecimalValue):
            if value._backend is backend:
                handle = value._handle
            else:
                handle = backend.from_string(str(value))
        elif isinstance(value, str):
            handle = backend.from_string(value)
        elif isinstance(value, (bool, int, float, Decimal)):
            handle = backend.from_string(number_to_string(value))
        else:
            raise InvalidNumericFormat(
                f"Invalid value type for decimal: {type(value).__name__}",
                operation="DecimalValue"
            )

        object.__setattr__(self, "_handle", handle)
        object.__setattr__(self, "_backend", backend)

    def __setattr__(self, name, value):
        raise AttributeError("DecimalValue is immutable")

    def __delattr__(self, name):
        raise AttributeError("DecimalValue is immutable")

    @classmethod
    def _wrap(cls, handle: Any, backend: DecimalBackend) -> "DecimalValue":
        instance = cls.__new__(cls)
        object.__setattr__(instance, "_handle", handle)
        object.__setattr__(instance, "_backend", backend)
        return instance

    # Construction

    @classmethod
    def from_string(cls, text: str) -> "DecimalValue":
        """
        Parse a decimal literal.

        Raises:
            InvalidNumericFormat: If text is not a valid decimal number
        """
        if not isinstance(text, str):
            raise InvalidNumericFormat(
                f"Expected a string, got {type(text).__name__}", operation="from_string"
            )
        return cls(text)

    @classmethod
    def from_number(cls, value: Union[int, float]) -> "DecimalValue":
        """
        Create from an int or finite float.

        Raises:
            NonFiniteNumber: For NaN and infinities
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidNumericFormat(
                f"Expected a number, got {type(value).__name__}", operation="from_number"
            )
        return cls(value)

    @classmethod
    def from_decimal(cls, value: Decimal) -> "DecimalValue":
        return cls(value)

    @classmethod
    def zero(cls) -> "DecimalValue":
        return cls("0")

    @classmethod
    def from_cents(cls, cents: int) -> "DecimalValue":
        """Create from an integer number of cents"""
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise InvalidNumericFormat(
                f"Cents must be an integer, got {type(cents).__name__}", operation="from_cents"
            )
        return cls(f"{cents}e-2")

    @property
    def backend(self) -> DecimalBackend:
        return self._backend

    def _coerce(self, other: Numeric) -> Any:
        """Backend handle for other, in this value's backend"""
        if isinstance(other, DecimalValue) and other._backend is self._backend:
            return other._handle
        return DecimalValue(other, self._backend)._handle

    def _apply(self, operation: str, func, *args) -> Any:
        try:
            return func(*args)
        except FinancialError:
            raise
        except Exception as e:
            raise OperationFailed(f"{operation} failed: {e}", operation=operation) from e

    # Arithmetic

    def plus(self, other: Numeric) -> "DecimalValue":
        handle = self._apply("add", self._backend.add, self._handle, self._coerce(other))
        return self._wrap(handle, self._backend)

    def minus(self, other: Numeric) -> "DecimalValue":
        handle = self._apply("subtract", self._backend.subtract, self._handle, self._coerce(other))
        return self._wrap(handle, self._backend)

    def times(self, other: Numeric) -> "DecimalValue":
        handle = self._apply("multiply", self._backend.multiply, self._handle, self._coerce(other))
        return self._wrap(handle, self._backend)

    def divided_by(self, other: Numeric, precision: Optional[int] = None,
                   rounding: Optional[Union[RoundingMode, int, str]] = None) -> "DecimalValue":
        """
        Divide, rounding the quotient to exactly `precision` places.

        Defaults come from configuration (20 places, HALF_EVEN).

        Raises:
            DivisionByZero: If other is zero
        """
        config = get_config()
        if precision is None:
            precision = config.default_division_precision
        mode = _resolve_rounding(
            config.default_rounding_mode if rounding is None else rounding, "divide"
        )
        handle = self._apply(
            "divide", self._backend.divide, self._handle, self._coerce(other), precision, mode
        )
        return self._wrap(handle, self._backend)

    def __add__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.plus(other)

    def __radd__(self, other):
        # sum() starts from int 0
        if not _is_operand(other):
            return NotImplemented
        return DecimalValue(other, self._backend).plus(self)

    def __sub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.minus(other)

    def __rsub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return DecimalValue(other, self._backend).minus(self)

    def __mul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.times(other)

    def __rmul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return DecimalValue(other, self._backend).times(self)

    def __neg__(self) -> "DecimalValue":
        return self._wrap(self._backend.negate(self._handle), self._backend)

    def __pos__(self) -> "DecimalValue":
        return self

    def abs(self) -> "DecimalValue":
        return self._wrap(self._backend.abs(self._handle), self._backend)

    def __abs__(self) -> "DecimalValue":
        return self.abs()

    # Comparison

    def compare(self, other: Numeric) -> int:
        """-1, 0 or 1"""
        return self._apply("compare", self._backend.compare, self._handle, self._coerce(other))

    compared_to = compare

    def equals(self, other: Numeric) -> bool:
        return self.compare(other) == 0

    def _compare_or_none(self, other) -> Optional[int]:
        if not _is_operand(other):
            return None
        return self.compare(other)

    def __eq__(self, other):
        # str is left to equals(): "1" and DecimalValue("1") cannot hash alike
        if isinstance(other, str) or not _is_operand(other):
            return NotImplemented
        try:
            return self.compare(other) == 0
        except FinancialError:
            return False

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __lt__(self, other):
        result = self._compare_or_none(other)
        return NotImplemented if result is None else result < 0

    def __le__(self, other):
        result = self._compare_or_none(other)
        return NotImplemented if result is None else result <= 0

    def __gt__(self, other):
        result = self._compare_or_none(other)
        return NotImplemented if result is None else result > 0

    def __ge__(self, other):
        result = self._compare_or_none(other)
        return NotImplemented if result is None else result >= 0

    def __hash__(self):
        # Equal values hash alike regardless of scale (1.0 == 1.00)
        return hash(self.to_decimal())

    def max(self, other: Numeric) -> "DecimalValue":
        other = DecimalValue(other, self._backend)
        return self if self.compare(other) >= 0 else other

    def min(self, other: Numeric) -> "DecimalValue":
        other = DecimalValue(other, self._backend)
        return self if self.compare(other) <= 0 else other

    # Rounding and formatting

    def round(self, precision: int = 2,
              rounding: Union[RoundingMode, int, str] = DEFAULT_ROUNDING) -> "DecimalValue":
        """Re-express with exactly `precision` places"""
        mode = _resolve_rounding(rounding, "round")
        handle = self._apply("round", self._backend.round, self._handle, precision, mode)
        return self._wrap(handle, self._backend)

    def to_fixed(self, dp: int = 2,
                 rounding: Union[RoundingMode, int, str] = DEFAULT_ROUNDING) -> str:
        return str(self.round(dp, rounding))

    @property
    def scale(self) -> int:
        """Digits after the decimal point"""
        return self._backend.scale(self._handle)

    def is_zero(self) -> bool:
        return self._backend.is_zero(self._handle)

    def is_positive(self) -> bool:
        return self._backend.is_positive(self._handle)

    def is_negative(self) -> bool:
        return self._backend.is_negative(self._handle)

    def to_float(self) -> float:
        """Lossy; for display and statistics only"""
        return self._backend.to_float(self._handle)

    def to_decimal(self) -> Decimal:
        """Exact conversion to decimal.Decimal"""
        return Decimal(str(self))

    def to_cents(self, rounding: Union[RoundingMode, int, str] = DEFAULT_ROUNDING) -> int:
        """Integer cents, rounding sub-cent amounts with `rounding`"""
        return int(self.round(2, rounding).times("100").round(0, RoundingMode.DOWN).to_fixed(0))

    def __str__(self) -> str:
        return self._backend.to_string(self._handle)

    def __repr__(self) -> str:
        return f"DecimalValue('{self}')"

    def __bool__(self) -> bool:
        return not self.is_zero()

    def __reduce__(self):
        return (DecimalValue, (str(self),))
