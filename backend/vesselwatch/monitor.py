"""Monitor — owns every piece of detection state and both polling timers.

The stores are built here and injected into the DetectionCycle and the
WatchlistPoller, so the core never reaches for module-level singletons.
The web app holds one Monitor per process (``get_monitor``); tests build
their own with fake collaborators.

Usage:
    from vesselwatch.monitor import build_monitor
    monitor = build_monitor()
    monitor.start()
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence

from vesselwatch.config import settings
from vesselwatch.models.anomaly import AnomalySnapshot
from vesselwatch.models.base import AnomalyKind
from vesselwatch.modules.alert_ledger import AlertLedger
from vesselwatch.modules.detection_cycle import DetectionCycle, now_ms
from vesselwatch.modules.deviation_detector import DeviationDetector
from vesselwatch.modules.geo_region import GeoRegion, load_default_region
from vesselwatch.modules.notifier import (
    AlertRecipients,
    EmailNotifier,
    NotificationResult,
    Notifier,
    send_test_notification,
)
from vesselwatch.modules.scheduler import RecurringTimer
from vesselwatch.modules.snapshot_cache import SnapshotCache
from vesselwatch.modules.track_store import TrackStore
from vesselwatch.modules.watchlist_poller import WatchlistPoller

logger = logging.getLogger(__name__)


class Monitor:
    def __init__(
        self,
        fetch: Callable[[], Sequence[Mapping[str, Any]]],
        fetch_one: Callable[[str], Mapping[str, Any] | None],
        notifier: Notifier,
        region: GeoRegion | None = None,
        recipients: AlertRecipients | None = None,
        clock: Callable[[], int] = now_ms,
        poll_interval: float | None = None,
        watchlist_interval: float | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self.region = region or GeoRegion()
        self.recipients = recipients or AlertRecipients()
        self.notifier = notifier
        self.ledger = AlertLedger()
        self.cache = SnapshotCache()
        self.tracks = TrackStore(capacity=settings.TRACK_HISTORY_SIZE)
        self.cycle = DetectionCycle(
            fetch=fetch,
            region=self.region,
            cache=self.cache,
            tracks=self.tracks,
            ledger=self.ledger,
            notifier=notifier,
            recipients=self.recipients.recipients,
            detector=DeviationDetector(self.tracks),
            clock=clock,
            fetch_timeout=fetch_timeout,
        )
        self.watchlist = WatchlistPoller(fetch_one=fetch_one, clock=clock, fetch_timeout=fetch_timeout)
        self._detection_timer = RecurringTimer(
            "detection", poll_interval or settings.POLL_INTERVAL_SECONDS, self.cycle.run_tick
        )
        self._watchlist_timer = RecurringTimer(
            "watchlist",
            watchlist_interval or settings.WATCHLIST_POLL_INTERVAL_SECONDS,
            self.watchlist.run_tick,
        )

    # -- lifecycle ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._detection_timer.is_running

    def start(self) -> None:
        self._detection_timer.start()
        self._watchlist_timer.start()

    def stop(self) -> None:
        self._detection_timer.stop()
        self._watchlist_timer.stop()

    # -- operator surface --------------------------------------------------

    def set_region(self, vertices: Sequence[Sequence[float]]) -> None:
        self.region.set_region(vertices)

    def snapshot(self) -> AnomalySnapshot:
        return self.cycle.snapshot

    def run_detection(self) -> dict:
        return self.cycle.run_tick()

    def clear_alert(self, kind: AnomalyKind, entity_id: str) -> bool:
        return self.ledger.clear(kind, entity_id)

    def reset_alerts(self) -> int:
        return self.ledger.reset_all()

    def track(self, mmsi: str) -> bool:
        return self.watchlist.add(mmsi)

    def untrack(self, mmsi: str) -> bool:
        return self.watchlist.remove(mmsi)

    def send_test_alert(self) -> NotificationResult:
        return send_test_notification(self.notifier, self.recipients)

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "state": self.cycle.state.value,
            "ticks_completed": self.cycle.ticks_completed,
            "last_error": self.cycle.last_error,
            "last_updated_ms": self.cycle.snapshot.last_updated_ms,
            "cached_vessels": len(self.cache),
            "tracked_histories": len(self.tracks),
            "outstanding_alerts": len(self.ledger),
            "watchlist": len(self.watchlist.tracked()),
            "geofence_default": self.region.is_default,
        }


def build_monitor() -> Monitor:
    """Wire a Monitor against the configured Datalastic account and SMTP relay."""
    from vesselwatch.modules.datalastic_client import DatalasticClient

    client = DatalasticClient()
    return Monitor(
        fetch=client.fetch_country_vessels,
        fetch_one=client.fetch_vessel,
        notifier=EmailNotifier(),
        region=load_default_region(settings.GEOFENCE_CONFIG),
        recipients=AlertRecipients(settings.ALERT_USER_EMAIL, settings.ALERT_COAST_GUARD_EMAIL),
    )


_monitor: Monitor | None = None


def get_monitor() -> Monitor:
    """FastAPI dependency returning the process Monitor (built on first use)."""
    global _monitor
    if _monitor is None:
        _monitor = build_monitor()
    return _monitor
