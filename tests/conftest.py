"""
Shared fixtures for the party relay tests.
"""

import pytest

from tests.helpers import FakeClock, FakeSpotify


@pytest.fixture
def fake_spotify() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
