"""UTC helpers. Every timestamp the services compare goes through as_utc()."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_utc_month(now: datetime) -> datetime:
    now = as_utc(now)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def first_of_next_utc_month(now: datetime) -> datetime:
    start = start_of_utc_month(now)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def isoformat_z(value: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z, the shape the dashboards parse."""
    return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
