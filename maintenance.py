"""
maintenance.py — Operator commands for the usage store.

Usage:
  python maintenance.py --init                 → create the usage table
  python maintenance.py --status               → month-to-date usage vs monthly quota
  python maintenance.py --history [--days N]   → most recent daily records

  --service NAME  restrict --status / --history to one service type (e.g. AzureFace)

Usage counts are written by the running service through
TransThrottle.flush_usage() (see throttle/flusher.py); this script only
reads and prepares the store.
"""

import sys
import logging

import config
from db.db import init_db, sum_usage, get_usage_history
from throttle.quota import utc_today
from throttle.service_types import ServiceType

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def _arg_value(args, flag, default=None):
    if flag not in args:
        return default
    index = args.index(flag)
    if index + 1 >= len(args):
        print(f"[ERROR] {flag} needs a value.")
        sys.exit(2)
    return args[index + 1]


def show_status(service_types):
    today = utc_today()
    limit = config.THROTTLE_MAX_PER_MONTH

    print("\n" + "=" * 55)
    print(f"[INFO] Usage for {today.year}-{today.month:02d}")
    print("=" * 55)

    for service_type in service_types:
        used = sum_usage(today.year, today.month, service_type)
        if used >= limit:
            print(f"  [WARNING] {service_type}: {used}/{limit} — monthly quota reached")
        else:
            print(f"  [OK] {service_type}: {used}/{limit} ({limit - used} remaining)")


def show_history(service_type, days):
    rows = get_usage_history(service_type, days)

    if not rows:
        print("[INFO] No usage recorded yet.")
        return

    print(f"\n{'Date':<12} {'Service':<12} {'Count':>8}")
    print("─" * 34)
    for row in rows:
        print(f"{row['date']:<12} {row['service_type']:<12} {row['count']:>8}")


def main():
    args = sys.argv[1:]

    service_name = _arg_value(args, "--service")
    try:
        service_type = ServiceType.parse(service_name) if service_name else None
    except ValueError as e:
        print(f"[ERROR] {e}")
        sys.exit(2)

    init_db()

    if "--init" in args:
        print(f"[OK] Usage database initialized: {config.USAGE_DB_FILE}")
        return

    if "--history" in args:
        show_history(service_type, int(_arg_value(args, "--days", 31)))
        return

    show_status([service_type] if service_type else list(ServiceType))


if __name__ == "__main__":
    main()
