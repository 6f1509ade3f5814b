"""
db/usage_store.py — Usage store handed to TransThrottle.

Exposes the two operations the throttle needs (sum_usage and
upsert_daily_usage) on top of db/db.py, creating the schema on first use
so a throttle can be constructed against a fresh database.
"""

import threading

import db.db as db_module

_schema_lock = threading.Lock()
_schema_ready_for = None


def _ensure_schema():
    global _schema_ready_for
    with _schema_lock:
        # Re-run if tests point DB_FILE somewhere else
        if _schema_ready_for != db_module.DB_FILE:
            db_module.init_db()
            _schema_ready_for = db_module.DB_FILE


def sum_usage(year, month, service_type):
    _ensure_schema()
    return db_module.sum_usage(year, month, service_type)


def upsert_daily_usage(day, service_type, delta):
    _ensure_schema()
    db_module.upsert_daily_usage(day, service_type, delta)


__all__ = ["sum_usage", "upsert_daily_usage"]
