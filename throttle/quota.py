"""
throttle/quota.py — Monthly quota tracking.

MonthlyUsage is an in-memory copy of the month-to-date call count for one
service type. It is seeded from the store when the tracker is built and
advanced whenever the throttle flushes its running total.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_today():
    return datetime.now(timezone.utc).date()


@dataclass
class MonthlyUsage:
    year: int
    month: int
    count: int = 0

    def matches(self, day):
        return self.year == day.year and self.month == day.month


class QuotaTracker:

    def __init__(self, service_type, store, max_per_month, today=utc_today):
        self.service_type = service_type
        self.max_per_month = max_per_month
        self._store = store
        self._today = today
        self._lock = threading.Lock()

        day = today()
        count = store.sum_usage(day.year, day.month, service_type)
        self._usage = MonthlyUsage(year=day.year, month=day.month, count=count)

        logger.info("Monthly transaction count initialised at %d for %s", count, service_type)

    @property
    def usage(self):
        with self._lock:
            return MonthlyUsage(self._usage.year, self._usage.month, self._usage.count)

    def disabled(self):
        with self._lock:
            return self._usage.count >= self.max_per_month

    def add_usage(self, count):
        """
        Persist count against today's record and add it to the month total.
        A new calendar month starts the total again from zero.
        """
        if count <= 0:
            return

        day = self._today()

        # Store first: if it raises, memory still matches what is durable.
        self._store.upsert_daily_usage(day, self.service_type, count)

        with self._lock:
            if not self._usage.matches(day):
                logger.info(
                    "New month %d-%02d for %s, monthly count reset (was %d)",
                    day.year, day.month, self.service_type, self._usage.count,
                )
                self._usage = MonthlyUsage(year=day.year, month=day.month, count=0)
            self._usage.count += count
            total = self._usage.count

        logger.info("Stored %d transactions for %s on %s (month total %d)",
                    count, self.service_type, day.isoformat(), total)

    def summary(self):
        with self._lock:
            usage = self._usage
            return f"{usage.count}/{self.max_per_month} ({usage.year}-{usage.month:02d})"
