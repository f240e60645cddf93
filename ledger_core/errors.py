"""
Financial Error Taxonomy

Arithmetic errors are reported to the immediate caller and never coerced
to zero. Engine lifecycle errors describe the state of the Backend Loader.
Batch validation problems are NOT exceptions; see batch_validator.
"""

from typing import Optional


class FinancialError(ValueError):
    """Base class for errors raised by the numeric core"""

    code = "FINANCIAL_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "operation": self.operation,
            "message": self.message,
        }


# Arithmetic

class InvalidNumericFormat(FinancialError):
    """Raised when a string (or other input) is not a valid decimal number"""
    code = "INVALID_NUMERIC_FORMAT"


class NonFiniteNumber(FinancialError):
    """Raised when constructing a value from NaN or an infinity"""
    code = "NON_FINITE"


class DivisionByZero(FinancialError, ZeroDivisionError):
    """Raised when dividing by a zero-valued operand"""
    code = "DIVISION_BY_ZERO"


# Backend lifecycle

class EngineNotInitialized(FinancialError):
    """Raised when no arithmetic backend is available"""
    code = "ENGINE_NOT_INITIALIZED"


class OperationFailed(FinancialError):
    """Raised when a backend operation fails for an unexpected reason"""
    code = "OPERATION_FAILED"


class EngineInitFailed(FinancialError):
    """Raised when backend initialization fails catastrophically"""
    code = "INIT_FAILED"
