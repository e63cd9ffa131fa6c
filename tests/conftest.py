"""Shared fixtures for the realtime chat tests."""

import pytest

from tests.support import ChatWorld, FakeClock, build_world


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def world(clock: FakeClock) -> ChatWorld:
    return build_world(clock)
