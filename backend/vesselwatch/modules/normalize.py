"""Ingestion adapter: provider records -> PositionReport.

Upstream feeds name the same concept several ways (``lat``/``latitude``/
``LAT``, ``speed``/``sog`` ...). All of that ambiguity is resolved here so
the detection core only ever sees the single PositionReport shape.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from vesselwatch.models.position import PositionReport

logger = logging.getLogger(__name__)

_ID_KEYS = ("mmsi", "MMSI", "entity_id", "entityId")
_LAT_KEYS = ("lat", "latitude", "LAT", "LATITUDE")
_LON_KEYS = ("lon", "lng", "longitude", "LON", "LONGITUDE")
_SPEED_KEYS = ("speed", "sog", "speed_knots", "SPEED", "SOG")
_COURSE_KEYS = ("course", "cog", "course_degrees", "COURSE", "COG")
_TIME_KEYS = (
    "observed_at_ms",
    "last_position_epoch",
    "timestamp",
    "last_position_UTC",
    "TIME",
    "time",
)

# AIS "not available" sentinels
_SOG_SENTINEL = 102.2
_COG_SENTINEL = 360.0

_COMMON_TIMESTAMP_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
]

# Epoch values above this are milliseconds, below are seconds
_EPOCH_MS_CUTOFF = 100_000_000_000


def _first(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def record_entity_id(raw: Any) -> str | None:
    """Entity id carried by *raw*, or None when it has none."""
    if not isinstance(raw, Mapping):
        return None
    entity_id = _first(raw, _ID_KEYS)
    if entity_id is None:
        return None
    return str(entity_id).strip() or None


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def parse_epoch_ms(ts: Any) -> int | None:
    """Parse a timestamp to epoch milliseconds.

    Supports: epoch seconds or milliseconds (int/float/numeric string),
    datetime objects, ISO 8601 and a few common strftime formats. Naive
    values are taken as UTC. Returns None if parsing fails.
    """
    if isinstance(ts, datetime):
        dt = ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None
        numeric = _to_float(ts_str)
        if numeric is not None:
            return parse_epoch_ms(numeric)
        try:
            return parse_epoch_ms(datetime.fromisoformat(ts_str.replace("Z", "+00:00")))
        except ValueError:
            pass
        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return parse_epoch_ms(datetime.strptime(ts_str, fmt))
            except ValueError:
                continue
        return None

    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return None
    if math.isfinite(ts) and ts > 0:
        if ts >= _EPOCH_MS_CUTOFF:
            return int(ts)
        return int(ts * 1000)

    return None


def normalize_position(raw: Mapping[str, Any], fetched_at_ms: int) -> PositionReport | None:
    """Map one provider record to a PositionReport.

    Returns None when the record cannot describe a position (no id, missing
    or out-of-range coordinates, negative speed). A missing speed is taken as
    0 kn and a missing timestamp as the fetch time.
    """
    entity_id = record_entity_id(raw)
    if entity_id is None:
        return None

    lat = _to_float(_first(raw, _LAT_KEYS))
    lon = _to_float(_first(raw, _LON_KEYS))
    if lat is None or lon is None:
        return None
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        return None

    speed = _to_float(_first(raw, _SPEED_KEYS))
    if speed is None or speed >= _SOG_SENTINEL:
        speed = 0.0
    if speed < 0:
        return None

    course = _to_float(_first(raw, _COURSE_KEYS))
    if course is not None and not (0 <= course < _COG_SENTINEL):
        course = None

    observed = parse_epoch_ms(_first(raw, _TIME_KEYS)) or fetched_at_ms

    consumed = set(_ID_KEYS + _LAT_KEYS + _LON_KEYS + _SPEED_KEYS + _COURSE_KEYS)
    metadata = {k: v for k, v in raw.items() if k not in consumed}

    return PositionReport(
        entity_id=entity_id,
        latitude=lat,
        longitude=lon,
        speed_knots=speed,
        course_degrees=course,
        observed_at_ms=observed,
        metadata=metadata,
    )


def normalize_positions(
    records: Iterable[Mapping[str, Any]], fetched_at_ms: int
) -> tuple[list[PositionReport], int, set[str]]:
    """Normalize a fetched batch.

    Returns (reports, malformed_count, skipped_ids). ``skipped_ids`` holds the
    ids of malformed records that still named their vessel: the vessel is
    reporting, it just has no usable position this cycle.
    """
    reports: list[PositionReport] = []
    skipped_ids: set[str] = set()
    malformed = 0
    for raw in records:
        try:
            report = normalize_position(raw, fetched_at_ms) if isinstance(raw, Mapping) else None
        except (ValueError, TypeError, OverflowError) as exc:
            logger.debug("Position record raised %s: %r", exc, raw)
            report = None
        if report is None:
            malformed += 1
            entity_id = record_entity_id(raw)
            if entity_id is not None:
                skipped_ids.add(entity_id)
            logger.debug("Skipping malformed position record: %r", raw)
            continue
        reports.append(report)
    # A valid duplicate wins over a malformed one
    skipped_ids.difference_update(r.entity_id for r in reports)
    return reports, malformed, skipped_ids
