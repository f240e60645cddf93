"""
Shared fixtures

Every test gets a fresh Backend Loader, fresh feature flags and its own
event dispatcher, so engine state never leaks between tests.
"""

import pytest

from ledger_core.backends.pure import PureDecimalBackend
from ledger_core.events import EventDispatcher, get_global_dispatcher, set_global_dispatcher
from ledger_core.feature_flags import reset_feature_flags
from ledger_core.loader import BackendLoader, set_loader


@pytest.fixture(autouse=True)
def isolated_engine():
    """Fresh loader, flags and dispatcher for each test"""
    reset_feature_flags()
    previous_loader = set_loader(BackendLoader())
    previous_dispatcher = get_global_dispatcher()
    set_global_dispatcher(EventDispatcher())
    yield
    set_loader(previous_loader)
    set_global_dispatcher(previous_dispatcher)
    reset_feature_flags()


def _native_backend():
    native = pytest.importorskip("ledger_core.backends.native")
    return native.NativeDecimalBackend()


@pytest.fixture(params=["pure", "native"])
def backend(request):
    """Each test using this fixture runs once per arithmetic backend"""
    if request.param == "pure":
        return PureDecimalBackend()
    return _native_backend()


@pytest.fixture
def native_backend():
    return _native_backend()


@pytest.fixture
def pure_backend():
    return PureDecimalBackend()


@pytest.fixture
def pure_engine():
    """Process-wide engine forced onto the pure-Python backend"""
    loader = BackendLoader(native_factory=_unavailable)
    set_loader(loader)
    loader.initialize()
    return loader


def _unavailable():
    raise ImportError("accelerated backend disabled for this test")
