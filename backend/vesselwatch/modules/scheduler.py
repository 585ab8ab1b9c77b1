"""Fixed-period recurring timer with skip-if-busy semantics.

Each timer owns one daemon thread and runs its callback on that thread, so
two ticks of the same timer can never overlap. Ticks that fall due while a
callback is still running are dropped (not queued) and the next tick is
aligned to the original schedule. An exception in the callback is logged and
the timer keeps going.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


class RecurringTimer:
    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Any],
        run_immediately: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.run_immediately = run_immediately
        self.ticks_run = 0
        self.ticks_skipped = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"timer-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Timer %s started (every %.0fs)", self.name, self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Timer %s stopped", self.name)

    def _loop(self) -> None:
        next_run = time.monotonic()
        if not self.run_immediately:
            next_run += self.interval_seconds

        while not self._stop.is_set():
            wait = next_run - time.monotonic()
            if wait > 0 and self._stop.wait(wait):
                break

            self._run_callback()

            next_run += self.interval_seconds
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // self.interval_seconds) + 1
                self.ticks_skipped += missed
                next_run += missed * self.interval_seconds
                logger.warning(
                    "Timer %s: tick overran, skipping %d due tick(s)", self.name, missed
                )

    def _run_callback(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.exception("Timer %s: tick failed", self.name)
        finally:
            self.ticks_run += 1
