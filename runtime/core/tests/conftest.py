"""
Runtime core test configuration.

Every test builds its own Runtime, so nothing leaks between tests.
"""

import pytest

from runtime.core import DispatchBridge, EventChannel, MemoryStorage, Runtime


class NavigationRecorder:
    """Stands in for the host navigate(to) callback."""

    def __init__(self):
        self.calls = []

    def __call__(self, to):
        self.calls.append(to)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def runtime(storage):
    return Runtime(storage)


@pytest.fixture
def navigate():
    return NavigationRecorder()


@pytest.fixture
def channel():
    return EventChannel()


@pytest.fixture
def bridge(runtime, navigate, channel):
    b = DispatchBridge(runtime, navigate)
    b.install(channel)
    return b
