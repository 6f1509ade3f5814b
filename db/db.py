"""
db/db.py — SQLite store for aggregated remote-API usage.

Tables:
    cloud_transactions — one row per (date, service_type) with the number
                         of remote calls made that day. Rows are upserted,
                         never duplicated and never deleted.

Dates are stored as ISO strings (YYYY-MM-DD) so month ranges sort and
compare correctly as text.
"""

import sqlite3
import os
from datetime import date

from config import USAGE_DB_FILE

DB_FILE = USAGE_DB_FILE


def get_conn():
    directory = os.path.dirname(DB_FILE)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(DB_FILE, timeout=30)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    conn = get_conn()
    c = conn.cursor()

    c.execute("""
        CREATE TABLE IF NOT EXISTS cloud_transactions (
            date         TEXT NOT NULL,
            service_type TEXT NOT NULL,
            count        INTEGER NOT NULL DEFAULT 0,
            updated_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (date, service_type)
        )
    """)

    conn.commit()
    conn.close()


def _service_key(service_type):
    """Accept a ServiceType member or its raw string value."""
    return getattr(service_type, "value", service_type)


def _month_bounds(year, month):
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start.isoformat(), end.isoformat()


# ─────────────────────────────────────────
# USAGE HELPERS
# ─────────────────────────────────────────

def sum_usage(year, month, service_type):
    """Total calls recorded for a calendar month and service type."""
    start, end = _month_bounds(year, month)
    conn = get_conn()
    c = conn.cursor()
    c.execute("""
        SELECT COALESCE(SUM(count), 0) AS total
        FROM cloud_transactions
        WHERE service_type = ? AND date >= ? AND date < ?
    """, (_service_key(service_type), start, end))
    total = c.fetchone()["total"]
    conn.close()
    return int(total)


def upsert_daily_usage(day, service_type, delta):
    """
    Add delta to the record for (day, service_type), inserting it if this
    is the first flush of the day.
    """
    conn = get_conn()
    c = conn.cursor()
    c.execute("""
        INSERT INTO cloud_transactions (date, service_type, count)
        VALUES (?, ?, ?)
        ON CONFLICT(date, service_type)
        DO UPDATE SET count = count + excluded.count,
                      updated_at = CURRENT_TIMESTAMP
    """, (day.isoformat(), _service_key(service_type), delta))
    conn.commit()
    conn.close()


def get_daily_usage(day, service_type):
    """Return the count stored for (day, service_type), or None if absent."""
    conn = get_conn()
    c = conn.cursor()
    c.execute("""
        SELECT count FROM cloud_transactions
        WHERE date = ? AND service_type = ?
    """, (day.isoformat(), _service_key(service_type)))
    row = c.fetchone()
    conn.close()
    return row["count"] if row else None


def get_usage_history(service_type=None, days=31):
    """Most recent daily records, newest first."""
    conn = get_conn()
    c = conn.cursor()
    if service_type is None:
        c.execute("""
            SELECT date, service_type, count FROM cloud_transactions
            ORDER BY date DESC, service_type ASC
            LIMIT ?
        """, (days,))
    else:
        c.execute("""
            SELECT date, service_type, count FROM cloud_transactions
            WHERE service_type = ?
            ORDER BY date DESC
            LIMIT ?
        """, (_service_key(service_type), days))
    rows = [dict(r) for r in c.fetchall()]
    conn.close()
    return rows


if __name__ == "__main__":
    init_db()
