from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention used for every stored datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_now(tz_name: str) -> datetime:
    """Naive wall-clock time in the business timezone, the convention for ticket timestamps."""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
