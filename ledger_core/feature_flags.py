"""
Feature flags for backend acceleration

Seeded from LedgerCoreConfig and adjustable at runtime. The
prefer_pure_implementation flag overrides everything else.
"""

import threading
from dataclasses import dataclass, fields, replace
from typing import Optional

from .config import LedgerCoreConfig, get_config


@dataclass(frozen=True)
class FeatureFlags:
    use_accelerated_decimal: bool = True     # Use libmpdec for decimal arithmetic
    prefer_pure_implementation: bool = False  # Force the pure-Python backend
    log_backend_performance: bool = False     # Log elapsed time of batch calls

    @classmethod
    def from_config(cls, config: LedgerCoreConfig) -> "FeatureFlags":
        return cls(
            use_accelerated_decimal=config.accelerated_decimal_enabled,
            prefer_pure_implementation=config.prefer_pure_implementation,
            log_backend_performance=config.log_backend_performance
        )

    def effective(self) -> "FeatureFlags":
        """Flags after applying the prefer_pure_implementation override"""
        if self.prefer_pure_implementation:
            return replace(self, use_accelerated_decimal=False)
        return self


_lock = threading.RLock()
_flags: Optional[FeatureFlags] = None


def get_feature_flags() -> FeatureFlags:
    """Get the current effective feature flags"""
    global _flags
    with _lock:
        if _flags is None:
            _flags = FeatureFlags.from_config(get_config())
        return _flags.effective()


def update_feature_flags(**changes) -> FeatureFlags:
    """
    Update feature flags

    Raises:
        ValueError: If a flag name is unknown
    """
    global _flags
    known = {f.name for f in fields(FeatureFlags)}
    unknown = set(changes) - known
    if unknown:
        raise ValueError(f"Unknown feature flags: {', '.join(sorted(unknown))}")

    with _lock:
        if _flags is None:
            _flags = FeatureFlags.from_config(get_config())
        _flags = replace(_flags, **changes)
        return _flags.effective()


def reset_feature_flags() -> FeatureFlags:
    """Re-seed feature flags from the current configuration"""
    global _flags
    with _lock:
        _flags = FeatureFlags.from_config(get_config())
        return _flags.effective()
