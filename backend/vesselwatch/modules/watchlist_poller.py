"""Refresh loop for operator-tracked vessels.

Watchlisted vessels are fetched one by one from the provider and cached the
same way as the detection snapshot, on their own SnapshotCache/TrackStore
pair. They are outside the geofence/anomaly pipeline: nothing here alerts.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping

from vesselwatch.config import settings
from vesselwatch.models.position import PositionReport
from vesselwatch.modules.detection_cycle import fetch_with_timeout, now_ms
from vesselwatch.modules.normalize import normalize_positions
from vesselwatch.modules.snapshot_cache import CacheEntry, SnapshotCache
from vesselwatch.modules.track_store import TrackStore

logger = logging.getLogger(__name__)

FetchOneFn = Callable[[str], Mapping[str, Any] | None]


class WatchlistPoller:
    def __init__(
        self,
        fetch_one: FetchOneFn,
        cache: SnapshotCache | None = None,
        tracks: TrackStore | None = None,
        clock: Callable[[], int] = now_ms,
        fetch_timeout: float | None = None,
    ) -> None:
        self.fetch_one = fetch_one
        self.cache = cache or SnapshotCache()
        self.tracks = tracks or TrackStore(capacity=settings.TRACK_HISTORY_SIZE)
        self.clock = clock
        self.fetch_timeout = (
            fetch_timeout if fetch_timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        )
        self._tracked: set[str] = set()
        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()

    def add(self, mmsi: str) -> bool:
        """Start tracking *mmsi*. False if it was already tracked."""
        mmsi = mmsi.strip()
        if not mmsi:
            raise ValueError("mmsi required")
        with self._lock:
            if mmsi in self._tracked:
                return False
            self._tracked.add(mmsi)
        logger.info("Watchlist: tracking %s", mmsi)
        return True

    def remove(self, mmsi: str) -> bool:
        with self._lock:
            if mmsi not in self._tracked:
                return False
            self._tracked.discard(mmsi)
        logger.info("Watchlist: stopped tracking %s", mmsi)
        return True

    def tracked(self) -> list[str]:
        with self._lock:
            return sorted(self._tracked)

    def latest(self, mmsi: str) -> CacheEntry | None:
        return self.cache.get(mmsi)

    def track_of(self, mmsi: str) -> tuple[PositionReport, ...]:
        return self.tracks.history_of(mmsi)

    def run_tick(self) -> dict:
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Watchlist refresh skipped: previous refresh still running")
            return {"status": "skipped"}
        try:
            return self._refresh()
        except Exception as exc:
            logger.exception("Watchlist refresh failed")
            return {"status": "error", "error": str(exc)}
        finally:
            self._tick_lock.release()

    def _refresh(self) -> dict:
        ids = self.tracked()

        def _fetch_all() -> list[Mapping[str, Any]]:
            return [rec for rec in (self.fetch_one(mmsi) for mmsi in ids) if rec]

        try:
            raw = fetch_with_timeout(_fetch_all, self.fetch_timeout)
        except Exception as exc:
            logger.warning("Watchlist fetch failed, keeping previous positions: %s", exc)
            return {"status": "fetch_failed", "error": str(exc)}

        fetched_at = self.clock()
        reports, malformed, skipped_ids = normalize_positions(raw, fetched_at)
        # A vessel removed mid-fetch is not cached again
        still_tracked = set(self.tracked())
        reports = [r for r in reports if r.entity_id in still_tracked]
        current, missing = self.cache.update_and_diff(
            reports, fetched_at, held_ids=skipped_ids & still_tracked
        )
        for report in current:
            history = self.tracks.history_of(report.entity_id)
            if not history or history[-1] != report:
                self.tracks.observe(report.entity_id, report)
        for gone in missing:
            logger.debug("Watchlist: no position for %s this refresh", gone.entity_id)

        return {
            "status": "ok",
            "tracked": len(ids),
            "found": len(current),
            "malformed": malformed,
        }
