"""
throttle/trans_throttle.py — Transaction throttle for a rate-limited,
quota-metered remote API.

Usage:
    throttle = TransThrottle(ServiceType.AZURE_FACE, classify=classify_http_error)

    if not throttle.disabled():
        faces = throttle.invoke("detect", lambda: client.detect(image))

Every successful call is recorded against a one-minute window; when the
window is full the caller sleeps until it runs out. Failures are
classified: rate limits are retried after a cooldown, structurally
invalid requests give up and return None, anything else is re-raised.

The monthly quota is advisory. disabled() reports it, callers enforce it.
Call flush_usage() periodically (see throttle/flusher.py) to persist the
running total so the monthly count survives restarts.
"""

import logging
import threading
import time

import config
from db import usage_store
from throttle.errors import ThrottleCancelled, default_classifier
from throttle.quota import QuotaTracker, utc_today
from throttle.service_types import ErrorKind
from throttle.window import WindowLimiter

logger = logging.getLogger(__name__)


class TransThrottle:

    def __init__(self, service_type, store=None, classify=None,
                 max_per_minute=None, max_per_month=None,
                 max_retries=None, cooldown_seconds=None,
                 sleep=None, clock=time.monotonic, today=utc_today):
        self.service_type = service_type
        self.max_retries = config.THROTTLE_MAX_RETRIES if max_retries is None else max_retries
        self.cooldown_seconds = (config.THROTTLE_COOLDOWN_SECONDS
                                 if cooldown_seconds is None else cooldown_seconds)
        self._classify = classify or default_classifier
        self._sleep = sleep or self._wait
        self._closed = threading.Event()

        if max_per_minute is None:
            max_per_minute = config.THROTTLE_MAX_PER_MINUTE
        if max_per_month is None:
            max_per_month = config.THROTTLE_MAX_PER_MONTH

        self._window = WindowLimiter(
            max_per_minute=max_per_minute,
            sleep=self._sleep,
            window_seconds=config.THROTTLE_WINDOW_SECONDS,
            margin_seconds=config.THROTTLE_WINDOW_MARGIN_SECONDS,
            long_delay_seconds=config.THROTTLE_LONG_DELAY_SECONDS,
            clock=clock,
        )
        self._quota = QuotaTracker(
            service_type,
            store if store is not None else usage_store,
            max_per_month=max_per_month,
            today=today,
        )

        self.set_limits(max_per_minute, max_per_month)

    # ─────────────────────────────────────────
    # STATUS
    # ─────────────────────────────────────────

    @property
    def total_transactions(self):
        """Calls recorded since the last flush."""
        return self._window.total_transactions

    @property
    def window_transactions(self):
        return self._window.window_transactions

    @property
    def monthly_usage(self):
        return self._quota.usage

    def monthly_summary(self):
        return self._quota.summary()

    def disabled(self):
        """True once the monthly quota is used up."""
        return self._quota.disabled()

    def set_limits(self, max_per_minute, max_per_month):
        if max_per_minute < 1 or max_per_month < 1:
            raise ValueError(
                f"Limits must be positive (got {max_per_minute}/min, {max_per_month}/month)"
            )
        self._window.max_per_minute = max_per_minute
        self._quota.max_per_month = max_per_month

        logger.info("Transaction limits for %s set to %d/min, and %d/month",
                    self.service_type, max_per_minute, max_per_month)

    # ─────────────────────────────────────────
    # CALL WRAPPERS
    # ─────────────────────────────────────────

    def invoke(self, description, operation, cancel=None):
        """
        Run operation (a zero-argument callable) with throttling and retries.

        The operation is called again on every attempt. Returns its result,
        or None if the request was structurally invalid. Rate-limit errors
        are raised once the retry budget is spent; unclassified errors are
        raised straight away.

        cancel is an optional threading.Event; setting it aborts any sleep
        with ThrottleCancelled.
        """
        retries = self.max_retries

        while retries > 0:
            retries -= 1
            try:
                result = operation()
            except Exception as ex:
                retries = self._handle_error(ex, description, retries, cancel)
                continue

            self._window.record_transaction(description, cancel)
            return result

        return None

    def run(self, description, operation, cancel=None):
        """invoke() for operations with no useful return value."""
        self.invoke(description, operation, cancel)

    def _handle_error(self, ex, description, retries_remaining, cancel):
        """Returns the retry budget left after this failure."""
        kind = self._classify(ex)

        if kind is ErrorKind.RATE_LIMITED:
            if retries_remaining <= 0:
                logger.warning("Throttle error on %s: %s. Out of retries.", description, ex)
                raise
            logger.warning(
                "Throttle error on %s: %s. Window transcount: %d. Retrying %d more times.",
                description, ex, self.window_transactions, retries_remaining,
            )
            self._sleep(self.cooldown_seconds, cancel)
            return retries_remaining

        if kind is ErrorKind.STRUCTURAL_INVALID:
            # No point retrying, the request itself is invalid.
            logger.warning("Request for %s exceeds a hard service limit: %s", description, ex)
            return 0

        raise

    # ─────────────────────────────────────────
    # MAINTENANCE
    # ─────────────────────────────────────────

    def flush_usage(self):
        """
        Move the running total into the monthly count and today's stored
        record. Returns the number of transactions flushed.
        """
        count = self._window.drain_total()
        if count == 0:
            return 0

        try:
            self._quota.add_usage(count)
        except Exception:
            self._window.restore_total(count)
            raise

        return count

    def close(self):
        """
        Abort pending sleeps. Calls that would sleep afterwards are cancelled too.
        Periodic flushing is stopped separately, see UsageFlusher.shutdown().
        """
        self._closed.set()

    def _wait(self, seconds, cancel=None):
        if cancel is None:
            interrupted = self._closed.wait(seconds)
        else:
            deadline = time.monotonic() + seconds
            interrupted = False
            while not interrupted:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                interrupted = cancel.wait(min(remaining, 0.5)) or self._closed.is_set()

        if interrupted:
            raise ThrottleCancelled(f"Throttle sleep of {seconds:.0f}s cancelled")
