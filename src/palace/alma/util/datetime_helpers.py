import datetime
from typing import overload

import pytz
from dateutil import parser as dateutil_parser


def from_timestamp(ts: float) -> datetime.datetime:
    """Return a UTC datetime object from a timestamp.

    :return: datetime object
    """
    return datetime.datetime.fromtimestamp(ts, tz=pytz.UTC)


@overload
def to_utc(dt: datetime.datetime) -> datetime.datetime: ...


@overload
def to_utc(dt: datetime.datetime | None) -> datetime.datetime | None: ...


def to_utc(dt: datetime.datetime | None) -> datetime.datetime | None:
    """This converts a naive datetime object that represents UTC into
    an aware datetime object.

    :return: datetime object, or None if `dt` was None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    if dt.tzinfo == pytz.UTC:
        # Already UTC.
        return dt
    return dt.astimezone(pytz.UTC)


def parse_iso_utc(value: str | None) -> datetime.datetime | None:
    """Parse an ISO 8601 date or datetime into an aware UTC datetime.

    Alma sends due dates like `2024-05-01T23:59:00Z`, but date-only
    values are accepted too and are treated as midnight UTC.

    :return: datetime object, or None if `value` is empty or unparseable.
    """
    if not value:
        return None
    try:
        return to_utc(dateutil_parser.isoparse(value.strip()))
    except (ValueError, OverflowError):
        return None


def _ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_long_date(dt: datetime.datetime) -> str:
    """Format a datetime as e.g. `Wednesday 1st May 2024`, in UTC."""
    dt = to_utc(dt)
    return f"{dt:%A} {dt.day}{_ordinal_suffix(dt.day)} {dt:%B %Y}"
