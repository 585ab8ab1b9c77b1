"""Per-vessel bounded history of recent accepted positions."""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Iterable

from vesselwatch.models.position import PositionReport

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class TrackStore:
    """Most recent *capacity* positions per entity, oldest evicted first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 2:
            raise ValueError("track capacity must be at least 2")
        self.capacity = capacity
        self._tracks: dict[str, deque[PositionReport]] = {}
        self._lock = threading.Lock()

    def observe(self, entity_id: str, position: PositionReport) -> None:
        with self._lock:
            track = self._tracks.get(entity_id)
            if track is None:
                track = self._tracks[entity_id] = deque(maxlen=self.capacity)
            track.append(position)

    def history_of(self, entity_id: str) -> tuple[PositionReport, ...]:
        with self._lock:
            return tuple(self._tracks.get(entity_id, ()))

    def entity_ids(self) -> list[str]:
        with self._lock:
            return list(self._tracks)

    def reap(self, older_than_ms: int, keep: Iterable[str] = ()) -> int:
        """Drop tracks whose newest point was observed before *older_than_ms*.

        Ids in *keep* belong to vessels that are still reporting (moored or
        off-track fixes are never appended) and are left alone.
        """
        keep = set(keep)
        with self._lock:
            stale = [
                entity_id
                for entity_id, track in self._tracks.items()
                if entity_id not in keep and track and track[-1].observed_at_ms < older_than_ms
            ]
            for entity_id in stale:
                del self._tracks[entity_id]
        if stale:
            logger.debug("Reaped %d stale tracks", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)
