"""
Accelerated backend capability detection

Determines whether the compiled decimal extension is present in this
interpreter and which of its optional features are available.
"""

import importlib
import importlib.util
import platform
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..logging_config import get_logger

logger = get_logger("ledger_core.detection")

NATIVE_MODULE = "_decimal"

# Attributes the accelerated backend relies on
REQUIRED_ATTRIBUTES = (
    "Context", "Decimal", "MAX_PREC", "MAX_EMAX", "MIN_EMIN",
    "ROUND_05UP", "ROUND_HALF_EVEN", "InvalidOperation"
)


@dataclass
class NativeSupport:
    """Results of accelerated backend detection"""
    supported: bool
    platform: str
    python_implementation: str
    libmpdec_version: Optional[str] = None
    features: Dict[str, bool] = field(default_factory=lambda: {
        "c_decimal": False,    # compiled extension importable
        "threads": False,      # built with thread support
        "contextvar": False,   # contexts are context-variable local
    })
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supported": self.supported,
            "platform": self.platform,
            "python_implementation": self.python_implementation,
            "libmpdec_version": self.libmpdec_version,
            "features": dict(self.features),
            "reason": self.reason
        }


def determine_platform() -> str:
    """Platform name such as 'linux-x86_64'"""
    return f"{sys.platform}-{platform.machine() or 'unknown'}"


def detect_native_support(module_name: str = NATIVE_MODULE) -> NativeSupport:
    """
    Detect whether the compiled decimal module can back the accelerated
    backend. Never raises for a missing module; the reason is recorded.
    """
    result = NativeSupport(
        supported=False,
        platform=determine_platform(),
        python_implementation=platform.python_implementation()
    )

    if importlib.util.find_spec(module_name) is None:
        result.reason = f"{module_name} extension not available on {result.python_implementation}"
        logger.info(result.reason)
        return result

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        result.reason = f"{module_name} extension failed to import: {e}"
        logger.warning(result.reason)
        return result

    result.features["c_decimal"] = True
    result.features["threads"] = bool(getattr(module, "HAVE_THREADS", False))
    result.features["contextvar"] = bool(getattr(module, "HAVE_CONTEXTVAR", False))
    result.libmpdec_version = getattr(module, "__libmpdec_version__", None)

    missing = [name for name in REQUIRED_ATTRIBUTES if not hasattr(module, name)]
    if missing:
        result.reason = f"{module_name} is missing required attributes: {', '.join(missing)}"
        logger.warning(result.reason)
        return result

    result.supported = True
    logger.debug(f"Accelerated decimal support detected: {result.to_dict()}")
    return result
