"""Shared geodesic and planar geometry utilities.

Canonical implementations of haversine distance, point-to-track distance
and polygon containment used by geo_region and deviation_detector.
"""
from __future__ import annotations

import math
from typing import Sequence

_EARTH_RADIUS_NM: float = 3440.065   # Earth mean radius in nautical miles
_EARTH_RADIUS_M: float = 6_371_000.0  # Earth mean radius in metres

# Cross-product tolerance (degrees²) for "point lies on an edge"
_EDGE_EPSILON: float = 1e-12

LatLon = tuple[float, float]


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return _EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    return haversine_nm(lat1, lon1, lat2, lon2) * _EARTH_RADIUS_M / _EARTH_RADIUS_NM


def _wrap_lon_delta(dlon: float) -> float:
    """Normalize a longitude difference into [-180, 180)."""
    return (dlon + 180.0) % 360.0 - 180.0


def point_to_segment_nm(point: LatLon, start: LatLon, end: LatLon) -> float:
    """Distance in nautical miles from *point* to the segment *start*–*end*.

    The closest point on the segment is located in a local equirectangular
    plane centred on *point* (accurate at track scale, a few tens of nm),
    then the distance to it is measured with haversine.
    """
    lat_p, lon_p = point
    cos_lat = math.cos(math.radians(lat_p))

    def _project(ll: LatLon) -> tuple[float, float]:
        x = math.radians(_wrap_lon_delta(ll[1] - lon_p)) * cos_lat
        y = math.radians(ll[0] - lat_p)
        return x, y

    ax, ay = _project(start)
    bx, by = _project(end)
    dx, dy = bx - ax, by - ay
    seg_len_sq = dx * dx + dy * dy
    if seg_len_sq == 0.0:
        t = 0.0
    else:
        # Point sits at the origin of the local plane
        t = max(0.0, min(1.0, -(ax * dx + ay * dy) / seg_len_sq))

    cx, cy = ax + t * dx, ay + t * dy
    closest_lat = lat_p + math.degrees(cy)
    closest_lon = lon_p + (math.degrees(cx / cos_lat) if cos_lat else 0.0)
    return haversine_nm(lat_p, lon_p, closest_lat, closest_lon)


def point_to_polyline_nm(point: LatLon, line: Sequence[LatLon]) -> float:
    """Minimum distance in nautical miles from *point* to a polyline.

    Every adjacent vertex pair is a segment. A single-vertex line degrades to
    point-to-point distance.
    """
    if not line:
        raise ValueError("polyline needs at least one vertex")
    if len(line) == 1:
        return haversine_nm(point[0], point[1], line[0][0], line[0][1])
    return min(
        point_to_segment_nm(point, line[i], line[i + 1])
        for i in range(len(line) - 1)
    )


def _on_edge(lat: float, lon: float, a: LatLon, b: LatLon) -> bool:
    cross = (b[1] - a[1]) * (lat - a[0]) - (b[0] - a[0]) * (lon - a[1])
    if abs(cross) > _EDGE_EPSILON:
        return False
    return (
        min(a[0], b[0]) <= lat <= max(a[0], b[0])
        and min(a[1], b[1]) <= lon <= max(a[1], b[1])
    )


def point_in_ring(lat: float, lon: float, ring: Sequence[LatLon]) -> bool:
    """Ray-casting containment test over a closed ring of (lat, lon) vertices.

    Points exactly on an edge or vertex count as inside.
    """
    n = len(ring)
    for i in range(n - 1):
        if _on_edge(lat, lon, ring[i], ring[i + 1]):
            return True

    inside = False
    for i in range(n - 1):
        (lat_i, lon_i), (lat_j, lon_j) = ring[i], ring[i + 1]
        if (lat_i > lat) != (lat_j > lat):
            crossing_lon = lon_i + (lat - lat_i) * (lon_j - lon_i) / (lat_j - lat_i)
            if lon < crossing_lon:
                inside = not inside
    return inside
