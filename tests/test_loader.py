"""
Test suite for the Backend Loader

Tests the initialization state machine, fallback selection, catastrophic
failures and concurrent first use.
"""

import asyncio
import logging
import threading

import pytest

from ledger_core.backends.detection import NativeSupport
from ledger_core.backends.pure import PureDecimalBackend
from ledger_core.config import LedgerCoreConfig
from ledger_core.errors import EngineInitFailed, EngineNotInitialized
from ledger_core.events import DomainEvent, get_global_dispatcher
from ledger_core.feature_flags import FeatureFlags, get_feature_flags
from ledger_core.loader import (
    BackendLoader, LoaderState, get_backend, get_loader, initialize_engine,
    run_self_test, engine_ready
)
from ledger_core.rounding import RoundingMode


class SkewedBackend(PureDecimalBackend):
    """Backend that ignores the requested rounding mode"""
    name = "skewed"
    accelerated = True

    def round(self, handle, precision, mode):
        return super().round(handle, precision, RoundingMode.HALF_UP)


class FakeAcceleratedBackend(PureDecimalBackend):
    name = "fake-accelerated"
    accelerated = True


def supported():
    return NativeSupport(supported=True, platform="test", python_implementation="CPython")


def unsupported():
    return NativeSupport(
        supported=False, platform="test", python_implementation="PyPy",
        reason="_decimal extension not available on PyPy"
    )


def failing_import():
    raise ImportError("No module named '_decimal'")


class TestLoaderStates:
    """Test the state machine"""

    def test_starts_uninitialized(self):
        loader = BackendLoader()
        assert loader.state is LoaderState.UNINITIALIZED
        assert loader.attempts == 0

    def test_backend_before_initialize(self):
        loader = BackendLoader()
        with pytest.raises(EngineNotInitialized) as exc_info:
            loader.backend
        assert exc_info.value.code == "ENGINE_NOT_INITIALIZED"

    def test_accelerated_backend_ready(self):
        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=supported)
        backend = loader.initialize()

        assert loader.state is LoaderState.READY
        assert backend.name == "fake-accelerated"
        assert loader.backend is backend
        assert loader.fallback_reason is None

    def test_default_loader_selects_a_working_backend(self):
        loader = BackendLoader()
        backend = loader.initialize()

        assert loader.state in (LoaderState.READY, LoaderState.FALLBACK_READY)
        result = backend.divide(backend.from_string("10"), backend.from_string("3"), 2, RoundingMode.HALF_EVEN)
        assert backend.to_string(result) == "3.33"

    def test_libmpdec_selected_when_available(self):
        pytest.importorskip("ledger_core.backends.native")
        loader = BackendLoader()
        assert loader.initialize().name == "libmpdec"
        assert loader.state is LoaderState.READY

    def test_initialize_is_idempotent(self):
        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=supported)
        first = loader.initialize()
        second = loader.initialize()
        assert first is second
        assert loader.attempts == 1

    def test_describe(self):
        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=supported)
        assert loader.describe()["state"] == "uninitialized"

        loader.initialize()
        status = loader.describe()
        assert status["state"] == "ready"
        assert status["backend"] == "fake-accelerated"
        assert status["accelerated"] is True
        assert status["detection"]["supported"] is True


class TestFallback:
    """Test fallback selection; callers always receive a working backend"""

    def test_disabled_by_configuration(self, caplog):
        loader = BackendLoader(
            native_factory=FakeAcceleratedBackend, detector=supported,
            flags_provider=lambda: FeatureFlags(use_accelerated_decimal=False)
        )
        with caplog.at_level(logging.INFO, logger="ledger_core.loader"):
            backend = loader.initialize()

        assert loader.state is LoaderState.FALLBACK_READY
        assert backend.name == "pure-python"
        assert "disabled" in loader.fallback_reason
        records = [r for r in caplog.records if r.name == "ledger_core.loader"]
        assert records and all(r.levelno == logging.INFO for r in records)

    def test_prefer_pure_override(self):
        loader = BackendLoader(
            native_factory=FakeAcceleratedBackend, detector=supported,
            flags_provider=lambda: FeatureFlags(prefer_pure_implementation=True).effective()
        )
        assert loader.initialize().name == "pure-python"

    def test_import_failure(self, caplog):
        loader = BackendLoader(native_factory=failing_import, detector=supported)
        with caplog.at_level(logging.WARNING, logger="ledger_core.loader"):
            backend = loader.initialize()

        assert loader.state is LoaderState.FALLBACK_READY
        assert isinstance(backend, PureDecimalBackend)
        assert "No module named" in loader.fallback_reason
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_unsupported_platform(self):
        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=unsupported)
        loader.initialize()

        assert loader.state is LoaderState.FALLBACK_READY
        assert "PyPy" in loader.fallback_reason
        assert loader.describe()["detection"]["python_implementation"] == "PyPy"

    def test_detection_failure_prefers_pure(self):
        def broken_detector():
            raise RuntimeError("platform probe crashed")

        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=broken_detector)
        loader.initialize()

        assert loader.state is LoaderState.FALLBACK_READY
        assert get_feature_flags().use_accelerated_decimal is False

    def test_self_test_mismatch(self):
        loader = BackendLoader(native_factory=SkewedBackend, detector=supported)
        backend = loader.initialize()

        assert loader.state is LoaderState.FALLBACK_READY
        assert backend.name == "pure-python"
        assert "mismatch" in loader.fallback_reason

    def test_run_self_test_accepts_equivalent_backends(self):
        run_self_test(PureDecimalBackend(), PureDecimalBackend())

    def test_run_self_test_on_libmpdec(self):
        native = pytest.importorskip("ledger_core.backends.native")
        run_self_test(native.NativeDecimalBackend(), PureDecimalBackend())


class TestCatastrophicFailure:
    """Test FAILED is surfaced and never retried"""

    def test_corrupted_configuration(self):
        loader = BackendLoader(
            config_provider=lambda: LedgerCoreConfig(default_rounding_mode="SIDEWAYS")
        )
        with pytest.raises(EngineInitFailed) as exc_info:
            loader.initialize()

        assert exc_info.value.code == "INIT_FAILED"
        assert loader.state is LoaderState.FAILED

    def test_unreadable_configuration(self):
        def broken_config():
            raise ValueError("cannot parse LEDGER_CORE_DEFAULT_DIVISION_PRECISION")

        loader = BackendLoader(config_provider=broken_config)
        with pytest.raises(EngineInitFailed):
            loader.initialize()

    def test_invalid_environment(self, monkeypatch):
        from ledger_core import config as config_module

        monkeypatch.setenv("LEDGER_CORE_DEFAULT_DIVISION_PRECISION", "abc")
        monkeypatch.setattr(config_module, "config", None)

        loader = BackendLoader()
        with pytest.raises(EngineInitFailed) as exc_info:
            loader.initialize()

        assert exc_info.value.code == "INIT_FAILED"
        assert loader.state is LoaderState.FAILED

    def test_invalid_rounding_mode_in_environment(self, monkeypatch):
        from ledger_core import config as config_module

        monkeypatch.setenv("LEDGER_CORE_DEFAULT_ROUNDING_MODE", "SIDEWAYS")
        monkeypatch.setattr(config_module, "config", None)

        loader = BackendLoader()
        with pytest.raises(EngineInitFailed):
            loader.initialize()
        assert loader.state is LoaderState.FAILED

    def test_out_of_memory(self):
        def exhausted():
            raise MemoryError()

        loader = BackendLoader(native_factory=exhausted, detector=supported)
        with pytest.raises(EngineInitFailed):
            loader.initialize()
        assert loader.state is LoaderState.FAILED

    def test_no_retry_after_failure(self):
        calls = []

        def broken_config():
            calls.append(1)
            raise ValueError("corrupted")

        loader = BackendLoader(config_provider=broken_config)
        with pytest.raises(EngineInitFailed) as first:
            loader.initialize()
        with pytest.raises(EngineInitFailed) as second:
            loader.initialize()

        assert first.value is second.value
        assert len(calls) == 1
        assert loader.attempts == 1
        with pytest.raises(EngineNotInitialized):
            loader.backend

    def test_interrupted_initialization(self):
        def interrupted():
            raise KeyboardInterrupt()

        loader = BackendLoader(native_factory=interrupted, detector=supported)
        with pytest.raises(KeyboardInterrupt):
            loader.initialize()
        assert loader.state is LoaderState.FAILED
        with pytest.raises(EngineInitFailed):
            loader.initialize()


class TestConcurrentInitialization:
    """Concurrent callers share one attempt and one outcome"""

    def test_single_attempt_for_many_threads(self):
        release = threading.Event()
        calls = []

        def slow_factory():
            calls.append(threading.get_ident())
            release.wait(5)
            return FakeAcceleratedBackend()

        loader = BackendLoader(native_factory=slow_factory, detector=supported)
        results = []
        errors = []

        def worker():
            try:
                results.append(loader.initialize(timeout=10))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        release.set()
        for thread in threads:
            thread.join(10)

        assert not errors
        assert len(calls) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert loader.state is LoaderState.READY

    def test_waiting_caller_times_out(self):
        started = threading.Event()
        release = threading.Event()

        def blocking_factory():
            started.set()
            release.wait(5)
            return FakeAcceleratedBackend()

        loader = BackendLoader(native_factory=blocking_factory, detector=supported)
        owner = threading.Thread(target=loader.initialize)
        owner.start()
        try:
            assert started.wait(5)
            assert loader.state is LoaderState.INITIALIZING
            with pytest.raises(EngineNotInitialized):
                loader.initialize(timeout=0.05)
        finally:
            release.set()
            owner.join(5)

        assert loader.state is LoaderState.READY

    def test_waiters_observe_failure(self):
        started = threading.Event()
        release = threading.Event()

        def corrupted_config():
            started.set()
            release.wait(5)
            raise ValueError("corrupted")

        loader = BackendLoader(config_provider=corrupted_config)
        outcomes = []

        def worker():
            try:
                loader.initialize(timeout=10)
                outcomes.append("ok")
            except EngineInitFailed:
                outcomes.append("failed")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        assert started.wait(5)
        release.set()
        for thread in threads:
            thread.join(10)

        assert outcomes == ["failed"] * 4

    def test_async_ready(self):
        loader = BackendLoader(native_factory=FakeAcceleratedBackend, detector=supported)

        async def main():
            return await asyncio.gather(loader.ready(), loader.ready(), loader.ready())

        backends = asyncio.run(main())
        assert len({id(backend) for backend in backends}) == 1
        assert loader.attempts == 1


class TestEngineEvents:
    """Test lifecycle events are published"""

    def collect(self):
        received = []
        get_global_dispatcher().subscribe_all(received.append)
        return received

    def test_ready_event(self):
        received = self.collect()
        BackendLoader(native_factory=FakeAcceleratedBackend, detector=supported).initialize()
        assert [e.event_type for e in received] == [DomainEvent.ENGINE_READY]
        assert received[0].data["backend"] == "fake-accelerated"

    def test_fallback_event(self):
        received = self.collect()
        BackendLoader(native_factory=failing_import, detector=supported).initialize()
        assert [e.event_type for e in received] == [DomainEvent.ENGINE_FALLBACK]
        assert "reason" in received[0].data

    def test_failed_event(self):
        received = self.collect()
        loader = BackendLoader(config_provider=lambda: LedgerCoreConfig(default_rounding_mode="bogus"))
        with pytest.raises(EngineInitFailed):
            loader.initialize()
        assert [e.event_type for e in received] == [DomainEvent.ENGINE_FAILED]


class TestModuleFunctions:
    """Test the process-wide accessors"""

    def test_get_backend_initializes_lazily(self):
        loader = get_loader()
        assert loader.state is LoaderState.UNINITIALIZED
        backend = get_backend()
        assert loader.state in (LoaderState.READY, LoaderState.FALLBACK_READY)
        assert initialize_engine() is backend

    def test_engine_ready(self):
        backend = asyncio.run(engine_ready())
        assert backend is get_loader().backend
