"""Alert deduplication ledger.

One outstanding alert per (kind, entity) until an operator clears it. The
detection tick and the operator's clear/reset calls share this object, so
every read-modify-write happens under the same lock.
"""
from __future__ import annotations

import logging
import threading

from vesselwatch.models.base import AnomalyKind

logger = logging.getLogger(__name__)


class AlertLedger:
    def __init__(self) -> None:
        self._alerted: set[tuple[AnomalyKind, str]] = set()
        self._lock = threading.Lock()

    def should_alert(self, kind: AnomalyKind, entity_id: str) -> bool:
        """Mark (kind, entity_id) as alerted; True only if it was not already marked."""
        key = (AnomalyKind(kind), entity_id)
        with self._lock:
            if key in self._alerted:
                return False
            self._alerted.add(key)
            return True

    def clear(self, kind: AnomalyKind, entity_id: str) -> bool:
        """Re-arm one entry. True if it was present."""
        key = (AnomalyKind(kind), entity_id)
        with self._lock:
            if key not in self._alerted:
                return False
            self._alerted.discard(key)
        logger.info("Alert cleared: %s %s", key[0].value, entity_id)
        return True

    def reset_all(self) -> int:
        with self._lock:
            count = len(self._alerted)
            self._alerted.clear()
        logger.info("Alert ledger reset (%d entries)", count)
        return count

    def is_alerted(self, kind: AnomalyKind, entity_id: str) -> bool:
        with self._lock:
            return (AnomalyKind(kind), entity_id) in self._alerted

    def entries(self) -> list[tuple[AnomalyKind, str]]:
        with self._lock:
            return sorted(self._alerted, key=lambda k: (k[0].value, k[1]))

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerted)
