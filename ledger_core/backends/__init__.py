"""
Arithmetic backends: the interface, the accelerated libmpdec backend and
the pure-Python fallback. Only the Backend Loader chooses between them.
"""

from .base import DecimalBackend
from .pure import PureDecimalBackend

__all__ = ["DecimalBackend", "PureDecimalBackend"]
