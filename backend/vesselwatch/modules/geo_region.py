"""Geofence — the single active monitoring polygon.

Replacing the region never touches track or cache state: entities are simply
re-evaluated against the new ring on the next detection tick.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Sequence

import yaml

from vesselwatch.exceptions import InvalidPolygonError
from vesselwatch.utils.geo import LatLon, point_in_ring

logger = logging.getLogger(__name__)

# Eastern seaboard: inland Virginia to the New Jersey coast
DEFAULT_RING: tuple[LatLon, ...] = (
    (37.5, -78.5),
    (40.5, -77.5),
    (40.5, -74.5),
    (37.0, -75.0),
    (37.5, -78.5),
)


def _coerce_vertices(vertices: Sequence[Sequence[float]]) -> list[LatLon]:
    ring: list[LatLon] = []
    for vertex in vertices:
        try:
            lat, lon = (float(v) for v in vertex)
        except (TypeError, ValueError) as exc:
            raise InvalidPolygonError(f"Vertex {vertex!r} is not a [lat, lon] pair") from exc
        if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
            raise InvalidPolygonError(f"Vertex {vertex!r} is out of range")
        ring.append((lat, lon))
    return ring


def build_ring(vertices: Sequence[Sequence[float]]) -> tuple[LatLon, ...]:
    """Validate *vertices* and return them as a closed ring.

    Raises InvalidPolygonError if fewer than 3 distinct vertices remain.
    """
    if vertices is None:
        raise InvalidPolygonError("Geofence needs at least 3 vertices")
    ring = _coerce_vertices(vertices)
    if len(set(ring)) < 3:
        raise InvalidPolygonError(
            "Geofence needs at least 3 distinct [lat, lon] vertices"
        )
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    return tuple(ring)


class GeoRegion:
    def __init__(self, vertices: Sequence[Sequence[float]] | None = None) -> None:
        self._lock = threading.Lock()
        self._ring: tuple[LatLon, ...] | None = None
        self._is_default = False
        if vertices is not None:
            self.set_region(vertices)

    @property
    def vertices(self) -> tuple[LatLon, ...] | None:
        """The active closed ring, or None when no region is set."""
        return self._ring

    @property
    def is_set(self) -> bool:
        return self._ring is not None

    @property
    def is_default(self) -> bool:
        return self._is_default

    def set_region(self, vertices: Sequence[Sequence[float]], *, is_default: bool = False) -> None:
        """Replace the active ring. On InvalidPolygonError the previous ring stays."""
        ring = build_ring(vertices)
        with self._lock:
            self._ring = ring
            self._is_default = is_default
        logger.info("Geofence set: %d vertices%s", len(ring) - 1, " (default)" if is_default else "")

    def contains(self, lat: float, lon: float) -> bool:
        """True if (lat, lon) is inside the region or on its boundary."""
        ring = self._ring
        if ring is None:
            return False
        return point_in_ring(lat, lon, ring)


def load_default_region(config_path: str | Path) -> GeoRegion:
    """Build the startup region from a YAML file, falling back to DEFAULT_RING.

    The file holds ``geofence: [[lat, lon], ...]``.
    """
    region = GeoRegion()
    path = Path(config_path)
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
            if not isinstance(data, dict):
                raise InvalidPolygonError("expected a mapping with a 'geofence' key")
            region.set_region(data.get("geofence", []), is_default=True)
            return region
        except (yaml.YAMLError, InvalidPolygonError) as exc:
            logger.warning("Ignoring invalid geofence config %s: %s", path, exc)
    else:
        logger.info("Geofence config %s not found, using built-in default", path)
    region.set_region(DEFAULT_RING, is_default=True)
    return region
