from datetime import datetime, timedelta, timezone

import pytest

from VEZEPyNotify.app.config import Settings
from VEZEPyNotify.app.main import create_app
from VEZEPyNotify.app.store import NotificationStore


class StepClock:
    """Deterministic clock: each call moves forward by `step` seconds."""

    def __init__(self, start: datetime | None = None, step: float = 1.0):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def make_notification(device_id="A", **overrides) -> dict:
    body = {
        "device_id": device_id,
        "package_name": "com.whatsapp",
        "app_name": "WhatsApp",
        "title": "New message",
        "text": "hello",
        "timestamp": 1735732800000,
    }
    body.update(overrides)
    return body


@pytest.fixture()
def clock():
    return StepClock()


@pytest.fixture()
def store(clock):
    return NotificationStore(clock=clock)


@pytest.fixture()
def app(store):
    return create_app(Settings(max_body_bytes=4096), store=store)


@pytest.fixture()
def payload():
    return make_notification
