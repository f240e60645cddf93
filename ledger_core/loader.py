"""
Backend Loader

Process-wide selection of the arithmetic backend. Exactly one
initialization attempt runs; concurrent callers wait on the same
condition and observe the same terminal state.

    UNINITIALIZED -> INITIALIZING -> READY | FALLBACK_READY | FAILED

FAILED is final for the life of the process.
"""

import asyncio
import importlib
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .backends.base import DecimalBackend
from .backends.detection import NativeSupport, detect_native_support
from .backends.pure import PureDecimalBackend
from .config import LedgerCoreConfig, get_config
from .errors import EngineInitFailed, EngineNotInitialized
from .events import DomainEvent, EventPublisherMixin
from .feature_flags import FeatureFlags, get_feature_flags, update_feature_flags
from .logging_config import get_logger, log_action
from .rounding import RoundingMode


class LoaderState(Enum):
    """States of the backend loader"""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"                    # Accelerated backend selected
    FALLBACK_READY = "fallback_ready"  # Pure backend selected
    FAILED = "failed"                  # Catastrophic failure, no backend


TERMINAL_STATES = (LoaderState.READY, LoaderState.FALLBACK_READY, LoaderState.FAILED)

# (operation, operands...) evaluated on both backends after loading
SELF_TEST_PROBES = [
    ("divide", "10", "3", 2, RoundingMode.HALF_EVEN),
    ("divide", "-10", "3", 4, RoundingMode.FLOOR),
    ("divide", "1", "8", 2, RoundingMode.HALF_EVEN),
    ("divide", "2", "-7", 6, RoundingMode.UP),
    ("add", "0.1", "0.2"),
    ("subtract", "1.00", "1"),
    ("multiply", "1.10", "-0.5"),
] + [
    ("round", value, 0, mode)
    for value in ("2.5", "3.5", "-2.5", "-0.5", "1.49")
    for mode in RoundingMode
]


def load_native_backend() -> DecimalBackend:
    """Import and instantiate the accelerated backend"""
    module = importlib.import_module("ledger_core.backends.native")
    return module.NativeDecimalBackend()


def run_self_test(candidate: DecimalBackend, reference: DecimalBackend) -> None:
    """
    Evaluate the probe set on both backends.

    Raises:
        RuntimeError: On the first output that differs
    """
    for probe in SELF_TEST_PROBES:
        operation, *args = probe
        outputs = []
        for backend in (candidate, reference):
            if operation == "round":
                value, precision, mode = args
                outputs.append(backend.to_fixed(backend.from_string(value), precision, mode))
            elif operation == "divide":
                a, b, precision, mode = args
                result = backend.divide(backend.from_string(a), backend.from_string(b), precision, mode)
                outputs.append(backend.to_string(result))
            else:
                a, b = args
                result = getattr(backend, operation)(backend.from_string(a), backend.from_string(b))
                outputs.append(backend.to_string(result))

        if outputs[0] != outputs[1]:
            raise RuntimeError(
                f"Self-test mismatch for {probe!r}: {candidate.name}={outputs[0]!r}, "
                f"{reference.name}={outputs[1]!r}"
            )


class BackendLoader(EventPublisherMixin):
    """
    Selects the arithmetic backend once and hands it to every caller.
    """

    def __init__(
        self,
        native_factory: Callable[[], DecimalBackend] = load_native_backend,
        fallback_factory: Callable[[], DecimalBackend] = PureDecimalBackend,
        config_provider: Callable[[], LedgerCoreConfig] = get_config,
        flags_provider: Callable[[], FeatureFlags] = get_feature_flags,
        detector: Callable[[], NativeSupport] = detect_native_support,
        event_dispatcher=None
    ):
        self._native_factory = native_factory
        self._fallback_factory = fallback_factory
        self._config_provider = config_provider
        self._flags_provider = flags_provider
        self._detector = detector
        self._event_dispatcher = event_dispatcher

        self._condition = threading.Condition()
        self._state = LoaderState.UNINITIALIZED
        self._backend: Optional[DecimalBackend] = None
        self._fallback_reason: Optional[str] = None
        self._error: Optional[EngineInitFailed] = None
        self._support: Optional[NativeSupport] = None
        self._attempts = 0

        self.logger = get_logger("ledger_core.loader")

    @property
    def state(self) -> LoaderState:
        with self._condition:
            return self._state

    @property
    def fallback_reason(self) -> Optional[str]:
        with self._condition:
            return self._fallback_reason

    @property
    def error(self) -> Optional[EngineInitFailed]:
        with self._condition:
            return self._error

    @property
    def attempts(self) -> int:
        """Number of initialization attempts started (0 or 1)"""
        with self._condition:
            return self._attempts

    @property
    def backend(self) -> DecimalBackend:
        """
        The selected backend, without triggering initialization.

        Raises:
            EngineNotInitialized: Unless the loader is READY or FALLBACK_READY
        """
        with self._condition:
            if self._backend is not None:
                return self._backend
            message = f"Decimal engine not initialized (state: {self._state.value})"
            error = self._error
        if error is not None:
            raise EngineNotInitialized(f"{message}: {error}", operation="BackendLoader.backend") from error
        raise EngineNotInitialized(f"{message}. Call initialize_engine() first.", operation="BackendLoader.backend")

    def initialize(self, timeout: Optional[float] = None) -> DecimalBackend:
        """
        Initialize the backend, or wait for the attempt already in flight.

        Idempotent: later calls return the selected backend immediately.

        Raises:
            EngineInitFailed: If initialization failed catastrophically
            EngineNotInitialized: If timeout elapsed while another caller
                was still initializing
        """
        with self._condition:
            if self._state is LoaderState.UNINITIALIZED:
                self._state = LoaderState.INITIALIZING
                self._attempts += 1
            else:
                finished = self._condition.wait_for(
                    lambda: self._state in TERMINAL_STATES, timeout=timeout
                )
                if not finished:
                    raise EngineNotInitialized(
                        "Timed out waiting for decimal engine initialization",
                        operation="BackendLoader.initialize"
                    )
                return self._outcome()

        # Only the caller that moved the state to INITIALIZING gets here
        return self._run_initialization()

    async def ready(self) -> DecimalBackend:
        """Awaitable form of initialize()"""
        return await asyncio.to_thread(self.initialize)

    def describe(self) -> Dict[str, Any]:
        """Status snapshot for diagnostics"""
        with self._condition:
            return {
                "state": self._state.value,
                "backend": self._backend.name if self._backend else None,
                "accelerated": self._backend.accelerated if self._backend else False,
                "fallback_reason": self._fallback_reason,
                "error": str(self._error) if self._error else None,
                "detection": self._support.to_dict() if self._support else None
            }

    def _outcome(self) -> DecimalBackend:
        # Caller holds the condition and the state is terminal
        if self._state is LoaderState.FAILED:
            raise self._error
        return self._backend

    def _run_initialization(self) -> DecimalBackend:
        started = time.perf_counter()
        try:
            backend, fallback_reason, requested = self._select_backend()
        except Exception as exc:
            error = exc if isinstance(exc, EngineInitFailed) else EngineInitFailed(
                f"Could not initialize decimal engine: {exc}", operation="BackendLoader.initialize"
            )
            self._finish(LoaderState.FAILED, error=error)
            log_action(self.logger, "error", f"Decimal engine initialization failed: {exc}",
                       operation="initialize", exc_info=True)
            self.publish_event(DomainEvent.ENGINE_FAILED, "engine", "decimal", {"error": str(error)})
            if error is exc:
                raise
            raise error from exc
        except BaseException:
            self._finish(LoaderState.FAILED, error=EngineInitFailed(
                "Decimal engine initialization was interrupted", operation="BackendLoader.initialize"
            ))
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)

        if fallback_reason is None:
            self._finish(LoaderState.READY, backend=backend)
            log_action(self.logger, "info", "Decimal engine ready", operation="initialize",
                       backend=backend.name, extra={"elapsed_ms": elapsed_ms})
            self.publish_event(DomainEvent.ENGINE_READY, "engine", "decimal", {"backend": backend.name})
        else:
            self._finish(LoaderState.FALLBACK_READY, backend=backend, fallback_reason=fallback_reason)
            log_action(self.logger, "info" if requested else "warning",
                       f"Using {backend.name} decimal backend: {fallback_reason}",
                       operation="initialize", backend=backend.name,
                       extra={"elapsed_ms": elapsed_ms, "requested": requested})
            self.publish_event(DomainEvent.ENGINE_FALLBACK, "engine", "decimal",
                               {"backend": backend.name, "reason": fallback_reason})

        return backend

    def _finish(self, state: LoaderState, backend: Optional[DecimalBackend] = None,
                fallback_reason: Optional[str] = None, error: Optional[EngineInitFailed] = None) -> None:
        with self._condition:
            self._state = state
            self._backend = backend
            self._fallback_reason = fallback_reason
            self._error = error
            self._condition.notify_all()

    def _select_backend(self) -> Tuple[DecimalBackend, Optional[str], bool]:
        """
        Returns (backend, fallback_reason, fallback_requested). Exceptions
        escaping this method are catastrophic.
        """
        try:
            config = self._config_provider()
            RoundingMode.parse(config.default_rounding_mode)
            if config.default_division_precision < 0:
                raise ValueError("default_division_precision must not be negative")
        except Exception as exc:
            raise EngineInitFailed(f"Corrupted configuration: {exc}",
                                   operation="BackendLoader.initialize") from exc

        flags = self._flags_provider()
        if not flags.use_accelerated_decimal:
            return self._fallback_factory(), "acceleration disabled by configuration", True

        try:
            support = self._detector()
        except Exception as exc:
            update_feature_flags(prefer_pure_implementation=True)
            return self._fallback_factory(), f"capability detection failed: {exc}", False

        with self._condition:
            self._support = support
        if not support.supported:
            return self._fallback_factory(), f"accelerated backend unsupported: {support.reason}", False

        fallback = self._fallback_factory()
        try:
            backend = self._native_factory()
            run_self_test(backend, fallback)
        except MemoryError:
            raise
        except Exception as exc:
            return fallback, f"accelerated backend failed to load: {exc}", False

        return backend, None, False


# Process-wide loader
_default_loader = BackendLoader()


def get_loader() -> BackendLoader:
    """Get the process-wide backend loader"""
    return _default_loader


def set_loader(loader: BackendLoader) -> BackendLoader:
    """Replace the process-wide loader; returns the previous one"""
    global _default_loader
    previous, _default_loader = _default_loader, loader
    return previous


def initialize_engine(timeout: Optional[float] = None) -> DecimalBackend:
    """Initialize the decimal engine. Call this at application startup."""
    return _default_loader.initialize(timeout=timeout)


async def engine_ready() -> DecimalBackend:
    """Await the process-wide decimal engine"""
    return await _default_loader.ready()


def get_backend() -> DecimalBackend:
    """The active backend, initializing the engine on first use"""
    return _default_loader.initialize()
