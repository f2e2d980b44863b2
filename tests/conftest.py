"""Shared fixtures."""

from collections.abc import Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls

from outcome_reporter.testing.transport import RecordingTransport


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls]:
    """Mock aiohttp requests for the duration of a test."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def transport() -> RecordingTransport:
    """Create a recording transport answering 200 by default."""
    return RecordingTransport()
