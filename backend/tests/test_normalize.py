"""Tests for provider record normalization."""
from datetime import datetime, timezone

import pytest

from vesselwatch.modules.normalize import normalize_position, normalize_positions, parse_epoch_ms

FETCHED_AT = 1_700_000_000_000


class TestParseEpochMs:
    def test_epoch_seconds(self):
        assert parse_epoch_ms(1_700_000_000) == 1_700_000_000_000

    def test_epoch_millis(self):
        assert parse_epoch_ms(1_700_000_000_123) == 1_700_000_000_123

    def test_numeric_string(self):
        assert parse_epoch_ms("1700000000") == 1_700_000_000_000

    def test_iso_with_z(self):
        assert parse_epoch_ms("2023-11-14T22:13:20Z") == 1_700_000_000_000

    def test_naive_strftime_is_utc(self):
        assert parse_epoch_ms("2023-11-14 22:13:20") == 1_700_000_000_000

    def test_datetime(self):
        dt = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert parse_epoch_ms(dt) == 1_700_000_000_000

    @pytest.mark.parametrize(
        "value", [None, "", "yesterday", -5, 0, True, float("inf"), float("nan"), "Infinity"]
    )
    def test_unparseable(self, value):
        assert parse_epoch_ms(value) is None


class TestNormalizePosition:
    def test_datalastic_shape(self):
        raw = {
            "mmsi": 366999001,
            "lat": "38.9",
            "lon": -77.0,
            "speed": 11.5,
            "course": 92.0,
            "last_position_epoch": 1_700_000_000,
            "name": "EVER READY",
            "destination": "BALTIMORE",
        }
        report = normalize_position(raw, FETCHED_AT)
        assert report.entity_id == "366999001"
        assert report.latitude == 38.9
        assert report.speed_knots == 11.5
        assert report.course_degrees == 92.0
        assert report.observed_at_ms == 1_700_000_000_000
        assert report.metadata["name"] == "EVER READY"
        assert "lat" not in report.metadata

    def test_alternate_key_names(self):
        raw = {"MMSI": "1", "latitude": 10, "longitude": 20, "sog": 4, "cog": 180}
        report = normalize_position(raw, FETCHED_AT)
        assert (report.latitude, report.longitude) == (10.0, 20.0)
        assert report.speed_knots == 4.0
        assert report.course_degrees == 180.0

    def test_missing_timestamp_uses_fetch_time(self):
        report = normalize_position({"mmsi": "1", "lat": 0, "lon": 0}, FETCHED_AT)
        assert report.observed_at_ms == FETCHED_AT

    def test_missing_speed_is_zero(self):
        report = normalize_position({"mmsi": "1", "lat": 0, "lon": 0}, FETCHED_AT)
        assert report.speed_knots == 0.0

    def test_ais_sentinels(self):
        report = normalize_position(
            {"mmsi": "1", "lat": 0, "lon": 0, "speed": 102.3, "course": 360}, FETCHED_AT
        )
        assert report.speed_knots == 0.0
        assert report.course_degrees is None

    @pytest.mark.parametrize("raw", [
        {"lat": 1, "lon": 1},
        {"mmsi": "  ", "lat": 1, "lon": 1},
        {"mmsi": "1", "lon": 1},
        {"mmsi": "1", "lat": "north", "lon": 1},
        {"mmsi": "1", "lat": 91, "lon": 1},
        {"mmsi": "1", "lat": 1, "lon": -181},
        {"mmsi": "1", "lat": 1, "lon": 1, "speed": -3},
        {"mmsi": "1", "lat": float("nan"), "lon": 1},
    ])
    def test_malformed_records_rejected(self, raw):
        assert normalize_position(raw, FETCHED_AT) is None


class TestNormalizePositions:
    def test_counts_malformed(self):
        records = [
            {"mmsi": "1", "lat": 0, "lon": 0},
            {"mmsi": "2"},
            None,
            {"mmsi": "3", "lat": 1, "lon": 1},
        ]
        reports, malformed, skipped_ids = normalize_positions(records, FETCHED_AT)
        assert [r.entity_id for r in reports] == ["1", "3"]
        assert malformed == 2
        assert skipped_ids == {"2"}

    def test_infinite_timestamp_falls_back_to_fetch_time(self):
        records = [
            {"mmsi": "1", "lat": 0, "lon": 0, "timestamp": float("inf")},
            {"mmsi": "2", "lat": 1, "lon": 1},
        ]
        reports, malformed, _ = normalize_positions(records, FETCHED_AT)
        assert [r.entity_id for r in reports] == ["1", "2"]
        assert reports[0].observed_at_ms == FETCHED_AT
        assert malformed == 0

    def test_valid_duplicate_not_skipped(self):
        records = [{"mmsi": "1", "lat": None, "lon": 0}, {"mmsi": "1", "lat": 1, "lon": 1}]
        reports, malformed, skipped_ids = normalize_positions(records, FETCHED_AT)
        assert len(reports) == 1
        assert malformed == 1
        assert skipped_ids == set()
