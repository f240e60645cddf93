"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .rounding import RoundingMode


class LedgerCoreConfig(BaseSettings):
    """Ledger core numeric engine configuration"""

    # Backend selection
    accelerated_decimal_enabled: bool = True  # Allow the compiled decimal backend
    prefer_pure_implementation: bool = False  # Force the pure-Python backend everywhere

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_backend_performance: bool = False  # Log elapsed time per batch call

    # Arithmetic defaults
    default_division_precision: int = 20
    default_rounding_mode: str = "HALF_EVEN"  # GAAP banker's rounding

    # Categorization
    categorization_confidence_threshold: float = 0.8

    @field_validator("default_rounding_mode")
    @classmethod
    def validate_rounding_mode(cls, value: str) -> str:
        RoundingMode.parse(value)
        return value

    class Config:
        env_prefix = "LEDGER_CORE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance, built on first use
config: Optional[LedgerCoreConfig] = None


def get_config() -> LedgerCoreConfig:
    """
    Get global configuration instance

    Raises:
        pydantic.ValidationError: If the environment holds invalid settings
    """
    global config
    if config is None:
        config = LedgerCoreConfig()
    return config


def reload_config() -> LedgerCoreConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerCoreConfig()
    return config
