"""Global fixtures for Floorprint tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from floorprint.const import _LOGGER_SPAM_LESS
from floorprint.sample_buffer import SampleBuffer

from .helpers import FakeBackend, FakeClock


@pytest.fixture
def fake_backend() -> FakeBackend:
    """A ready scan backend that is not scanning yet."""
    return FakeBackend()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_buffer() -> SampleBuffer:
    return SampleBuffer()


# Rate limiting is keyed on message ids that persist between tests, so a
# warning emitted in one test would be suppressed in the next.
@pytest.fixture(autouse=True)
def reset_log_spam_less() -> Generator[None, None, None]:
    """Start every test with an empty rate-limit cache."""
    _LOGGER_SPAM_LESS.reset()
    yield
    _LOGGER_SPAM_LESS.reset()
