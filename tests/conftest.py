"""
conftest.py - Shared fixtures for the kiosk tests
"""

from datetime import datetime

import pytest

from angle_math import ClockGeometry, Point
from fakes import FakeClock, FakeMedia
from kiosk_config import KioskConfig


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def config(tmp_path):
    """Defaults with immediate call audio and telemetry in a temp dir"""
    return KioskConfig.from_dict({
        "CALL_AUDIO_DELAY_SEC": 0,
        "LOG_DIR": str(tmp_path / "logs"),
    })


@pytest.fixture
def geometry():
    return ClockGeometry(Point(100.0, 100.0), 100.0)


@pytest.fixture
def fixed_now():
    return lambda: datetime(2024, 1, 1, 1, 30, 0)
