"""Root conftest: markers and shared fixtures.

Markers
-------
unit    fast, no I/O, pure logic
timing  relies on wall-clock sleeps of a few hundred milliseconds
"""

from __future__ import annotations

import pytest
import structlog

from ratepoll.config import CycleSettings
from tests.fakes import RecordingDiagnostics


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "timing: test relies on short real sleeps")


@pytest.fixture(autouse=True)
def _reset_structlog():
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture
def diagnostics():
    return RecordingDiagnostics()


@pytest.fixture
def settings():
    return CycleSettings(cadence=0.3, batch_size=4)
