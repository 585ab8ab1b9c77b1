"""Shared test fixtures: fake collaborators, a wired Monitor and an API client."""
import os

# Must be set before vesselwatch.config builds its Settings instance
os.environ.setdefault("POLLING_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.pop("VESSELWATCH_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from vesselwatch.modules.geo_region import GeoRegion
from vesselwatch.modules.notifier import AlertRecipients, NotificationResult

# 1°×1° square around (38.9, -77.0)
SQUARE = [(38.4, -77.5), (39.4, -77.5), (39.4, -76.5), (38.4, -76.5)]


class FakeNotifier:
    """Records every send; optionally fails or raises."""

    def __init__(self, fail: bool = False, raise_exc: Exception | None = None):
        self.sent: list[tuple[str, str, list[str]]] = []
        self.fail = fail
        self.raise_exc = raise_exc

    def send(self, subject, body, recipients):
        if self.raise_exc is not None:
            raise self.raise_exc
        self.sent.append((subject, body, list(recipients)))
        if self.fail:
            return NotificationResult(success=False, reason="relay down")
        return NotificationResult(success=True)

    @property
    def subjects(self) -> list[str]:
        return [s for s, _, _ in self.sent]


class ScriptedFeed:
    """Upstream stand-in: returns the next scripted batch (or raises it)."""

    def __init__(self, batches=None):
        self.batches = list(batches or [])
        self.calls = 0

    def push(self, batch):
        self.batches.append(batch)

    def __call__(self):
        self.calls += 1
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        return batch


class StepClock:
    """Deterministic epoch-millis clock advancing 30s per read."""

    def __init__(self, start_ms: int = 1_700_000_000_000, step_ms: int = 30_000):
        self.now = start_ms - step_ms
        self.step_ms = step_ms

    def __call__(self) -> int:
        self.now += self.step_ms
        return self.now


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def feed():
    return ScriptedFeed()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def square_region():
    return GeoRegion(SQUARE)


@pytest.fixture
def vessel_records():
    """Per-MMSI provider records served to the watchlist fetch."""
    return {}


@pytest.fixture
def monitor(feed, notifier, square_region, clock, vessel_records, monkeypatch):
    """A Monitor wired to fakes and installed as the process monitor."""
    from vesselwatch import monitor as monitor_module
    from vesselwatch.monitor import Monitor

    mon = Monitor(
        fetch=feed,
        fetch_one=vessel_records.get,
        notifier=notifier,
        region=square_region,
        recipients=AlertRecipients("ops@example.com"),
        clock=clock,
        fetch_timeout=5.0,
    )
    monkeypatch.setattr(monitor_module, "_monitor", mon)
    yield mon
    mon.stop()


@pytest.fixture
def api_client(monitor):
    """TestClient against the app with the fake Monitor installed."""
    from vesselwatch.main import app

    with TestClient(app) as client:
        yield client
