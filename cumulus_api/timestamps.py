"""Conversions between epoch milliseconds, datetimes and ISO 8601 text."""

from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return EPOCH + timedelta(milliseconds=int(value))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes, stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def datetime_to_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return (_as_utc(value) - EPOCH) // timedelta(milliseconds=1)


def iso_to_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00"))).astimezone(
        timezone.utc
    )


def datetime_to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return (
        _as_utc(value)
        .astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def normalize_iso(value: Optional[str]) -> Optional[str]:
    """Render an ISO 8601 datetime the way the relational store hands it back."""
    return datetime_to_iso(iso_to_datetime(value))
