"""Tests for Monitor wiring, lifecycle and the position models it serves."""
import time

import pytest

from vesselwatch.models.anomaly import DeviationResult, MissingEntity, RouteDeviation
from vesselwatch.models.base import AnomalyKind
from vesselwatch.models.position import PositionReport
from vesselwatch.modules.geo_region import DEFAULT_RING


class TestMonitor:
    def test_status_before_first_tick(self, monitor):
        status = monitor.status()
        assert status["running"] is False
        assert status["state"] == "idle"
        assert status["ticks_completed"] == 0
        assert status["last_updated_ms"] is None
        assert status["geofence_default"] is False

    def test_status_after_tick(self, monitor, feed):
        feed.push([{"mmsi": "A", "lat": 38.9, "lon": -77.0, "speed": 10}])
        monitor.run_detection()
        status = monitor.status()
        assert status["ticks_completed"] == 1
        assert status["cached_vessels"] == 1
        assert status["tracked_histories"] == 1

    def test_start_and_stop_timers(self, monitor, feed):
        monitor.start()
        try:
            assert monitor.is_running
            deadline = time.monotonic() + 3
            while feed.calls == 0 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert feed.calls >= 1
        finally:
            monitor.stop()
        assert not monitor.is_running

    def test_clear_and_reset(self, monitor):
        monitor.ledger.should_alert(AnomalyKind.SIGNAL_SHUTOFF, "B")
        assert monitor.clear_alert(AnomalyKind.SIGNAL_SHUTOFF, "B")
        assert not monitor.clear_alert(AnomalyKind.SIGNAL_SHUTOFF, "B")
        monitor.ledger.should_alert(AnomalyKind.SIGNAL_SHUTOFF, "B")
        assert monitor.reset_alerts() == 1

    def test_build_monitor_uses_default_region(self, monkeypatch, tmp_path):
        from vesselwatch import monitor as monitor_module
        from vesselwatch.config import settings

        monkeypatch.setattr(settings, "GEOFENCE_CONFIG", str(tmp_path / "missing.yaml"))
        monkeypatch.setattr(settings, "ALERT_USER_EMAIL", "user@example.com")
        built = monitor_module.build_monitor()
        assert built.region.vertices == DEFAULT_RING
        assert built.recipients.recipients() == ["user@example.com"]
        assert not built.is_running


class TestModels:
    def test_position_rejects_negative_speed(self):
        with pytest.raises(ValueError):
            PositionReport(entity_id="A", latitude=0, longitude=0, speed_knots=-1, observed_at_ms=0)

    def test_position_rejects_empty_id(self):
        with pytest.raises(ValueError):
            PositionReport(entity_id="", latitude=0, longitude=0, speed_knots=1, observed_at_ms=0)

    def test_metadata_is_read_only(self):
        report = PositionReport(entity_id="A", latitude=0, longitude=0, speed_knots=1,
                                observed_at_ms=0, metadata={"name": "X"})
        with pytest.raises(TypeError):
            report.metadata["name"] = "Y"

    def test_to_dict_core_keys_win(self):
        report = PositionReport(entity_id="A", latitude=1.5, longitude=2.5, speed_knots=3,
                                observed_at_ms=9, metadata={"lat": "bogus", "flag": "US"})
        d = report.to_dict()
        assert d["lat"] == 1.5
        assert d["flag"] == "US"
        assert d["mmsi"] == "A"

    def test_deviation_result_invariant(self):
        with pytest.raises(ValueError):
            DeviationResult(has_deviated=True)
        with pytest.raises(ValueError):
            DeviationResult(has_deviated=False, distance_nm=1.0)

    def test_anomaly_dicts(self):
        report = PositionReport(entity_id="A", latitude=1, longitude=2, speed_knots=3, observed_at_ms=9)
        assert RouteDeviation(report=report, distance_nm=6.12345).to_dict()["deviation_nm"] == 6.123
        missing = MissingEntity(entity_id="A", last_report=report, missing_at_ms=20, last_seen_ms=10)
        assert missing.to_dict()["last_seen_ms"] == 10
