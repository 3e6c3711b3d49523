import sys

import pytest

from lmrtrace import config
from lmrtrace.contrib.light_my_request import LightMyRequestInstrumentation
from lmrtrace.contrib.light_my_request.patch import _PATCHES
from tests.contrib.light_my_request import fake_inject


@pytest.fixture
def light_my_request(monkeypatch):
    module = fake_inject.make_module()
    monkeypatch.setitem(sys.modules, "light_my_request", module)
    yield module


@pytest.fixture
def instrumentation(tracer_provider, light_my_request):
    instrumentation = LightMyRequestInstrumentation(tracer_provider=tracer_provider)
    instrumentation.enable()
    yield instrumentation
    instrumentation.disable()


@pytest.fixture
def config_hooks():
    hooks = config.light_my_request.hooks
    registered = []

    def register(name, func):
        hooks.register(name, func)
        registered.append((name, func))

    yield register

    for name, func in registered:
        hooks.deregister(name, func)


@pytest.fixture(autouse=True)
def clear_patch_registry():
    yield
    _PATCHES.clear()
