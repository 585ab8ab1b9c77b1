"""Latest full position set, diffed against each new fetch.

Algorithm (``update_and_diff``):
  1. Index the new fetch by entity id (a later duplicate wins)
  2. Every id held from the previous cycle but absent now becomes a
     MissingEntity built from its last cached report
  3. Ids in the new set keep ``first_seen_ms`` if already known, else are
     stamped with the fetch time; ``last_seen_ms`` is always the fetch time
  4. The cache is replaced by exactly the new set, so a vessel that drops out
     and later re-appears is first-seen again

Ids passed as ``held_ids`` showed up in the fetch without a usable position.
They are neither current nor missing: their previous entry is carried over
with ``last_seen_ms`` refreshed.

When a fetch fails this is simply not called, so the previous snapshot stays
available (stale over empty).
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Iterable

from vesselwatch.models.anomaly import MissingEntity
from vesselwatch.models.position import PositionReport


@dataclass(frozen=True)
class CacheEntry:
    report: PositionReport
    first_seen_ms: int
    last_seen_ms: int


class SnapshotCache:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def update_and_diff(
        self,
        new_positions: Iterable[PositionReport],
        fetched_at_ms: int,
        held_ids: Iterable[str] = (),
    ) -> tuple[list[PositionReport], list[MissingEntity]]:
        """Replace the snapshot with *new_positions*; return (current, missing)."""
        incoming: dict[str, PositionReport] = {}
        for report in new_positions:
            incoming[report.entity_id] = report
        held = set(held_ids) - incoming.keys()

        with self._lock:
            previous = self._entries
            missing = [
                MissingEntity(
                    entity_id=entity_id,
                    last_report=entry.report,
                    missing_at_ms=fetched_at_ms,
                    last_seen_ms=entry.last_seen_ms,
                )
                for entity_id, entry in previous.items()
                if entity_id not in incoming and entity_id not in held
            ]

            updated: dict[str, CacheEntry] = {}
            for entity_id in held:
                known = previous.get(entity_id)
                if known is not None:
                    updated[entity_id] = replace(known, last_seen_ms=fetched_at_ms)
            for entity_id, report in incoming.items():
                known = previous.get(entity_id)
                updated[entity_id] = CacheEntry(
                    report=report,
                    first_seen_ms=known.first_seen_ms if known else fetched_at_ms,
                    last_seen_ms=fetched_at_ms,
                )
            self._entries = updated

        return list(incoming.values()), missing

    def get(self, entity_id: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(entity_id)

    def entries(self) -> list[CacheEntry]:
        with self._lock:
            return list(self._entries.values())

    def reports(self) -> list[PositionReport]:
        return [entry.report for entry in self.entries()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
