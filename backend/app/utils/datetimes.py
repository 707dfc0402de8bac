"""
UTC helpers. Every datetime column in this app stores naive UTC.
"""
from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Aware values are converted to UTC; naive values are assumed to already be UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_utc(raw: str) -> datetime:
    raw = (raw or "").strip()
    if not raw:
        raise ValueError("datetime is required")
    # Accept ISO with "Z", ISO with offset, or MySQL-style "YYYY-MM-DD HH:MM:SS".
    return to_utc_naive(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def combine_day(day: date, hhmm: str) -> datetime:
    try:
        t = time.fromisoformat((hhmm or "").strip())
    except ValueError:
        raise ValueError(f"Invalid time {hhmm!r}; expected HH:MM")
    return datetime.combine(day, t)


def iso_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
