"""
throttle/flusher.py — Periodically persists throttle usage.

Runs flush_usage() on every registered throttle once per interval on a
daemon thread, and once more when stopped so an orderly shutdown keeps
the last partial interval. shutdown() does that and then closes the
throttles, aborting any caller still asleep in one.
"""

import logging
import threading

import config

logger = logging.getLogger(__name__)


class UsageFlusher:

    def __init__(self, throttles, interval_seconds=None):
        self.throttles = list(throttles)
        self.interval_seconds = (config.USAGE_FLUSH_INTERVAL_SECONDS
                                 if interval_seconds is None else interval_seconds)
        self._stop = threading.Event()
        self._thread = None

    def flush_all(self):
        """Flush every throttle. A failing store is logged, not fatal."""
        flushed = 0
        for throttle in self.throttles:
            try:
                flushed += throttle.flush_usage()
            except Exception:
                logger.exception("Usage flush failed for %s", throttle.service_type)
        return flushed

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="usage-flusher", daemon=True)
        self._thread.start()
        logger.info("Usage flusher started (every %ds)", self.interval_seconds)

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.flush_all()

    def shutdown(self, timeout=None):
        """Stop flushing, persist what is left, then close every throttle."""
        self.stop(timeout)
        for throttle in self.throttles:
            throttle.close()
        logger.info("Usage flusher shut down")

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            self.flush_all()
