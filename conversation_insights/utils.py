"""Shared timestamp helpers.

Stores persist timestamps as UTC ISO-8601 strings with microsecond precision
so that lexical order equals chronological order.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime for storage."""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def parse_iso(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def coerce_bound(value: str | date | datetime, *, end_of_day: bool) -> datetime:
    """Turn a date-range bound into an aware datetime.

    A bare date (``date`` or ``YYYY-MM-DD``) covers the whole day, so an upper
    bound resolves to the last microsecond of that day.

    Raises ValueError for unparsable strings.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return _day_bound(value, end_of_day)
    text = value.strip()
    if len(text) == 10:
        return _day_bound(date.fromisoformat(text), end_of_day)
    return parse_iso(text)  # type: ignore[return-value]


def _day_bound(day: date, end_of_day: bool) -> datetime:
    return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=UTC)
