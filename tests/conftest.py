"""Pytest fixtures for garmin_uploader tests."""
from datetime import datetime, timezone

import pytest

from garmin_uploader.config import ClientConfig
from garmin_uploader.diagnostics import DiagnosticsSink
from garmin_uploader.models import Credentials, UserProfileSettings, WeightScaleData
from garmin_uploader.token_store import TokenStore
from helpers import FakeClock, FakeTransport


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ClientConfig(consumer_key="consumer-key", consumer_secret="consumer-secret")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def diagnostics():
    return DiagnosticsSink()


@pytest.fixture
def token_store(clock):
    return TokenStore(clock=clock)


@pytest.fixture
def credentials():
    return Credentials("athlete@example.com", "hunter2")


@pytest.fixture
def weight_data(credentials):
    return WeightScaleData(
        credentials=credentials,
        timestamp=datetime(2024, 3, 1, 7, 30, tzinfo=timezone.utc),
        weight=80.5,
        percent_fat=18.2,
        percent_hydration=55.0,
        bone_mass=3.1,
        muscle_mass=38.4,
        bmi=24.8,
    )


@pytest.fixture
def profile():
    return UserProfileSettings(gender="male", age=35, height=180.0)
