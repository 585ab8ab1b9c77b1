"""Tests for the recurring polling timer."""
import threading
import time

import pytest

from vesselwatch.modules.scheduler import RecurringTimer


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestRecurringTimer:
    def test_runs_repeatedly_until_stopped(self):
        calls = []
        timer = RecurringTimer("t", 0.02, lambda: calls.append(1))
        timer.start()
        try:
            assert timer.is_running
            assert _wait_for(lambda: len(calls) >= 3)
        finally:
            timer.stop()
        assert not timer.is_running
        count = len(calls)
        time.sleep(0.1)
        assert len(calls) == count

    def test_run_immediately_false_waits_one_interval(self):
        calls = []
        timer = RecurringTimer("t", 5.0, lambda: calls.append(1), run_immediately=False)
        timer.start()
        time.sleep(0.1)
        timer.stop()
        assert calls == []

    def test_callback_exception_does_not_kill_timer(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        timer = RecurringTimer("t", 0.02, flaky)
        timer.start()
        try:
            assert _wait_for(lambda: len(calls) >= 3)
        finally:
            timer.stop()
        assert timer.ticks_run >= 3

    def test_overrun_skips_due_ticks(self):
        release = threading.Event()
        calls = []

        def slow():
            calls.append(1)
            if len(calls) == 1:
                release.wait(2)

        timer = RecurringTimer("t", 0.05, slow)
        timer.start()
        try:
            time.sleep(0.3)
            release.set()
            assert _wait_for(lambda: timer.ticks_skipped > 0)
        finally:
            timer.stop()
        # The stalled tick was never run concurrently or replayed in a burst
        assert timer.ticks_skipped >= 4

    def test_start_twice_is_noop(self):
        timer = RecurringTimer("t", 5.0, lambda: None, run_immediately=False)
        timer.start()
        thread = timer._thread
        timer.start()
        assert timer._thread is thread
        timer.stop()

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            RecurringTimer("t", 0, lambda: None)
