"""Detection cycle — one polling tick of the anomaly pipeline.

State machine per tick:
  IDLE -> FETCHING -> DIFFING -> ANALYZING -> DISPATCHING -> IDLE

  FETCHING     pull the full position set from the provider under a bounded
               timeout; any failure returns straight to IDLE with every store
               untouched (the stale snapshot stays available)
  DIFFING      normalize records (malformed ones are skipped) and diff them
               against the SnapshotCache -> (current, missing); a vessel
               whose record was malformed is held, not missing
  ANALYZING    keep only vessels inside the GeoRegion; run the
               DeviationDetector on each; vessels that vanished while their
               last report was inside the region are signal-shutoff candidates
  DISPATCHING  consult the AlertLedger per candidate and notify on first
               sighting; a failed send is logged and counted but the ledger
               mark stays (an operator clears it to retry)

A tick requested while another is in flight is skipped, not queued.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Mapping, Sequence

from vesselwatch.config import settings
from vesselwatch.exceptions import UpstreamFetchError
from vesselwatch.models.anomaly import AnomalySnapshot, MissingEntity, RouteDeviation
from vesselwatch.models.base import AnomalyKind, CycleState
from vesselwatch.modules.alert_ledger import AlertLedger
from vesselwatch.modules.deviation_detector import DeviationDetector
from vesselwatch.modules.geo_region import GeoRegion
from vesselwatch.modules.normalize import normalize_positions
from vesselwatch.modules.notifier import (
    Notifier,
    format_deviation_alert,
    format_shutoff_alert,
)
from vesselwatch.modules.snapshot_cache import SnapshotCache
from vesselwatch.modules.track_store import TrackStore

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Sequence[Mapping[str, Any]]]


def now_ms() -> int:
    return int(time.time() * 1000)


def fetch_with_timeout(fetch: FetchFn, timeout: float | None) -> Sequence[Mapping[str, Any]]:
    """Run *fetch*, turning a late or failed call into UpstreamFetchError.

    A fetch that overruns is abandoned on its worker thread; whatever it
    eventually returns is discarded.
    """
    if timeout is None:
        return fetch()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="upstream-fetch")
    try:
        future = executor.submit(fetch)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise UpstreamFetchError(f"Upstream fetch exceeded {timeout:.0f}s") from exc
    finally:
        executor.shutdown(wait=False)


class DetectionCycle:
    def __init__(
        self,
        fetch: FetchFn,
        region: GeoRegion,
        cache: SnapshotCache,
        tracks: TrackStore,
        ledger: AlertLedger,
        notifier: Notifier,
        recipients: Callable[[], Sequence[str]],
        detector: DeviationDetector | None = None,
        clock: Callable[[], int] = now_ms,
        fetch_timeout: float | None = None,
        reap_after_hours: float | None = None,
    ) -> None:
        self.fetch = fetch
        self.region = region
        self.cache = cache
        self.tracks = tracks
        self.ledger = ledger
        self.notifier = notifier
        self.recipients = recipients
        self.detector = detector or DeviationDetector(tracks)
        self.clock = clock
        self.fetch_timeout = (
            fetch_timeout if fetch_timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        )
        self.reap_after_hours = (
            reap_after_hours if reap_after_hours is not None else settings.TRACK_REAP_HOURS
        )
        self.state = CycleState.IDLE
        self.ticks_completed = 0
        self.last_error: str | None = None
        self._snapshot = AnomalySnapshot()
        self._tick_lock = threading.Lock()

    @property
    def snapshot(self) -> AnomalySnapshot:
        """Anomalies and in-region vessels from the latest successful tick."""
        return self._snapshot

    def run_tick(self) -> dict:
        """Run one full tick. Returns a stats dict; ``status`` is one of
        ``ok``, ``fetch_failed``, ``skipped`` or ``error``."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Detection tick skipped: previous tick still running")
            return {"status": "skipped"}
        try:
            return self._run_tick_locked()
        except Exception as exc:
            logger.exception("Detection tick failed")
            self.last_error = str(exc)
            return {"status": "error", "error": str(exc)}
        finally:
            self.state = CycleState.IDLE
            self._tick_lock.release()

    def _run_tick_locked(self) -> dict:
        self.state = CycleState.FETCHING
        try:
            raw = list(fetch_with_timeout(self.fetch, self.fetch_timeout))
        except Exception as exc:
            logger.warning("Upstream fetch failed, keeping previous snapshot: %s", exc)
            self.last_error = str(exc)
            return {"status": "fetch_failed", "error": str(exc)}

        fetched_at = self.clock()

        self.state = CycleState.DIFFING
        reports, malformed, skipped_ids = normalize_positions(raw, fetched_at)
        if malformed:
            logger.info("Skipped %d malformed position records", malformed)
        current, missing = self.cache.update_and_diff(reports, fetched_at, held_ids=skipped_ids)

        self.state = CycleState.ANALYZING
        if not self.region.is_set:
            logger.warning("No geofence set — nothing is being monitored")
        in_region = [r for r in current if self.region.contains(r.latitude, r.longitude)]
        deviations: list[RouteDeviation] = []
        for report in in_region:
            result = self.detector.evaluate(report.entity_id, report)
            if result.has_deviated:
                deviations.append(RouteDeviation(report=report, distance_nm=result.distance_nm))
        shutoffs = [
            m for m in missing
            if self.region.contains(m.last_report.latitude, m.last_report.longitude)
        ]

        self.state = CycleState.DISPATCHING
        dispatch = self._dispatch(deviations, shutoffs)

        reaped = 0
        if self.reap_after_hours and self.reap_after_hours > 0:
            cutoff = fetched_at - int(self.reap_after_hours * 3_600_000)
            live = {e.report.entity_id for e in self.cache.entries() if e.last_seen_ms >= cutoff}
            reaped = self.tracks.reap(cutoff, keep=live)

        stats = {
            "status": "ok",
            "fetched": len(raw),
            "malformed": malformed,
            "vessels": len(current),
            "in_region": len(in_region),
            "missing": len(missing),
            "route_deviations": len(deviations),
            "signal_shutoffs": len(shutoffs),
            **dispatch,
            "reaped": reaped,
        }
        self._snapshot = AnomalySnapshot(
            vessels=tuple(in_region),
            missing=tuple(missing),
            route_deviations=tuple(deviations),
            signal_shutoffs=tuple(shutoffs),
            last_updated_ms=fetched_at,
            stats=stats,
        )
        self.ticks_completed += 1
        self.last_error = None
        logger.info(
            "Poll completed: %d vessels in geofence, %d route deviations, %d AIS shutoffs",
            len(in_region), len(deviations), len(shutoffs),
        )
        return stats

    def _dispatch(
        self, deviations: list[RouteDeviation], shutoffs: list[MissingEntity]
    ) -> dict[str, int]:
        counts = {"alerts_sent": 0, "alerts_suppressed": 0, "dispatch_failures": 0}
        candidates: list[tuple[AnomalyKind, str, tuple[str, str]]] = [
            (AnomalyKind.ROUTE_DEVIATION, d.entity_id, format_deviation_alert(d))
            for d in deviations
        ] + [
            (AnomalyKind.SIGNAL_SHUTOFF, m.entity_id, format_shutoff_alert(m))
            for m in shutoffs
        ]

        for kind, entity_id, (subject, body) in candidates:
            if not self.ledger.should_alert(kind, entity_id):
                counts["alerts_suppressed"] += 1
                continue
            try:
                result = self.notifier.send(subject, body, list(self.recipients()))
            except Exception:
                logger.exception("Notifier raised for %s %s", kind.value, entity_id)
                counts["dispatch_failures"] += 1
                continue
            if result.success:
                counts["alerts_sent"] += 1
            else:
                counts["dispatch_failures"] += 1
                logger.error(
                    "Alert %s for %s not delivered: %s", kind.value, entity_id, result.reason
                )
        return counts
