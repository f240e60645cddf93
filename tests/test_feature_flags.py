"""
Test suite for feature flags and capability detection
"""

import pytest

from ledger_core.backends.detection import NativeSupport, detect_native_support, determine_platform
from ledger_core.feature_flags import (
    FeatureFlags, get_feature_flags, reset_feature_flags, update_feature_flags
)


class TestFeatureFlags:
    """Test runtime feature flags"""

    def test_defaults_follow_configuration(self):
        flags = get_feature_flags()
        assert flags.use_accelerated_decimal is True
        assert flags.prefer_pure_implementation is False
        assert flags.log_backend_performance is False

    def test_update(self):
        flags = update_feature_flags(log_backend_performance=True)
        assert flags.log_backend_performance is True
        assert get_feature_flags().log_backend_performance is True

    def test_prefer_pure_disables_acceleration(self):
        update_feature_flags(prefer_pure_implementation=True)
        assert get_feature_flags().use_accelerated_decimal is False

    def test_unknown_flag(self):
        with pytest.raises(ValueError):
            update_feature_flags(use_gpu=True)

    def test_reset(self):
        update_feature_flags(use_accelerated_decimal=False)
        assert reset_feature_flags().use_accelerated_decimal is True

    def test_seeded_from_environment(self, monkeypatch):
        from ledger_core import config as config_module

        monkeypatch.setenv("LEDGER_CORE_ACCELERATED_DECIMAL_ENABLED", "false")
        monkeypatch.setattr(config_module, "config", config_module.LedgerCoreConfig())
        assert reset_feature_flags().use_accelerated_decimal is False

    def test_effective_leaves_flags_unchanged(self):
        flags = FeatureFlags(prefer_pure_implementation=True)
        assert flags.effective().use_accelerated_decimal is False
        assert flags.use_accelerated_decimal is True


class TestDetection:
    """Test accelerated backend capability detection"""

    def test_detects_compiled_decimal(self):
        pytest.importorskip("_decimal")
        support = detect_native_support()
        assert support.supported is True
        assert support.features["c_decimal"] is True
        assert support.libmpdec_version
        assert support.reason is None

    def test_missing_module_is_not_an_error(self):
        support = detect_native_support("_no_such_decimal_extension")
        assert support.supported is False
        assert support.features["c_decimal"] is False
        assert "not available" in support.reason

    def test_missing_attributes(self):
        # json is importable but is not a decimal implementation
        support = detect_native_support("json")
        assert support.supported is False
        assert "missing required attributes" in support.reason

    def test_platform_name(self):
        assert "-" in determine_platform()

    def test_to_dict(self):
        support = NativeSupport(supported=False, platform="linux-x86_64", python_implementation="CPython")
        data = support.to_dict()
        assert data["platform"] == "linux-x86_64"
        assert set(data["features"]) == {"c_decimal", "threads", "contextvar"}
