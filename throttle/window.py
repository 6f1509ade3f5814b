"""
throttle/window.py — Fixed-window call limiter.

A window opens on the first recorded transaction and lasts
window_seconds. Transactions inside it are counted; once the count
reaches the per-minute cap the caller is put to sleep until the window
has run out (plus a small margin), and the next transaction after that
opens a fresh window.
"""

import logging
import threading
import time

logger = logging.getLogger(__name__)


class WindowLimiter:

    def __init__(self, max_per_minute, sleep, window_seconds=60,
                 margin_seconds=5, long_delay_seconds=10, clock=time.monotonic):
        """
        Args:
            max_per_minute:     Transactions allowed per window.
            sleep:              sleep(seconds, cancel) used to suspend the caller.
            window_seconds:     Window length.
            margin_seconds:     Added to every window sleep to stay clear of the boundary.
            long_delay_seconds: Sleeps longer than this are logged.
            clock:              Monotonic seconds source.
        """
        self.max_per_minute = max_per_minute
        self.window_seconds = window_seconds
        self.margin_seconds = margin_seconds
        self.long_delay_seconds = long_delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()

        self._window_start = None
        self._window_count = 0
        self._total_since_flush = 0

    @property
    def window_transactions(self):
        return self._window_count

    @property
    def total_transactions(self):
        return self._total_since_flush

    def record_transaction(self, description, cancel=None):
        """
        Count one completed remote call. Blocks the calling thread if the
        window is full. Returns the number of seconds slept.
        """
        with self._lock:
            now = self._clock()

            if self._window_start is None:
                self._window_start = now

            elapsed = now - self._window_start

            if elapsed > self.window_seconds:
                # Completed a window - so clean slate.
                self._window_start = now
                self._window_count = 0
                elapsed = 0

            self._window_count += 1
            self._total_since_flush += 1

            if self._window_count < self.max_per_minute:
                return 0

            sleep_time = max(
                self.margin_seconds,
                self.window_seconds - elapsed + self.margin_seconds,
            )

        if sleep_time > self.long_delay_seconds:
            logger.warning(
                "Sleeping for %.0fs to avoid transaction throttle on %s call.",
                sleep_time, description,
            )

        self._sleep(sleep_time, cancel)
        return sleep_time

    def drain_total(self):
        """Read and zero the running total in one step."""
        with self._lock:
            count = self._total_since_flush
            self._total_since_flush = 0
        return count

    def restore_total(self, count):
        """Put back a drained count that could not be persisted."""
        with self._lock:
            self._total_since_flush += count
