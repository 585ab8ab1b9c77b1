"""Route deviation detection against a vessel's recent track polyline.

Algorithm:
  1. Speed below the stationary threshold (1 kn) -> moored or drifting,
     never a deviation; history is left untouched
  2. Fewer than 2 prior points -> no established track yet; record the
     position and report no deviation
  3. Minimum distance from the new position to the polyline through the
     prior points in chronological order (every adjacent pair is a leg)
  4. Distance above the threshold (5 nm) -> deviation with that distance and
     the position is NOT added to the track; otherwise record it

Comparing against the whole polyline rather than the last fix absorbs normal
turns while still catching a jump off the established corridor.
"""
from __future__ import annotations

import logging

from vesselwatch.config import settings
from vesselwatch.models.anomaly import NOT_DEVIATED, DeviationResult
from vesselwatch.models.position import PositionReport
from vesselwatch.modules.track_store import TrackStore
from vesselwatch.utils.geo import point_to_polyline_nm

logger = logging.getLogger(__name__)


class DeviationDetector:
    def __init__(
        self,
        tracks: TrackStore,
        threshold_nm: float | None = None,
        stationary_speed_knots: float | None = None,
    ) -> None:
        self.tracks = tracks
        self.threshold_nm = (
            threshold_nm if threshold_nm is not None else settings.DEVIATION_THRESHOLD_NM
        )
        self.stationary_speed_knots = (
            stationary_speed_knots
            if stationary_speed_knots is not None
            else settings.STATIONARY_SPEED_KNOTS
        )

    def evaluate(self, entity_id: str, new_position: PositionReport) -> DeviationResult:
        if new_position.speed_knots < self.stationary_speed_knots:
            return NOT_DEVIATED

        history = self.tracks.history_of(entity_id)
        if len(history) < 2:
            self.tracks.observe(entity_id, new_position)
            return NOT_DEVIATED

        line = [(p.latitude, p.longitude) for p in history]
        distance = point_to_polyline_nm((new_position.latitude, new_position.longitude), line)

        if distance > self.threshold_nm:
            logger.info(
                "Route deviation: %s is %.2f nm off its %d-point track",
                entity_id, distance, len(history),
            )
            return DeviationResult(has_deviated=True, distance_nm=distance)

        self.tracks.observe(entity_id, new_position)
        return NOT_DEVIATED
