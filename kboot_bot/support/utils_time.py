# kboot_bot/support/utils_time.py
# UTC time helpers for log stamps and PID bookkeeping.

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime (aware)."""
    return datetime.now(timezone.utc)


utc_now = now_utc


def fmt_iso_utc(dt: datetime) -> str:
    """Format an aware datetime as ISO-8601 UTC with a trailing 'Z'."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
