"""
Calendar Features
=================

Local-time calendar fields used to bucket congestion events.

All helpers take an optional tzinfo. None means the host's local time
zone, which is what the recording devices report against.

Conventions:
    day_of_week: 0 = Sunday ... 6 = Saturday
    iso_week:    ISO-8601 week (weeks start Monday; week 1 holds the
                 year's first Thursday)
    week_start:  Monday 00:00 local of the containing week
"""

from datetime import datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Resolve an IANA zone name.

    Returns:
        ZoneInfo for the name, or None (host local time) if name is empty
    """
    if not name:
        return None
    return ZoneInfo(name)


def from_timestamp_ms(timestamp_ms: int, tz: Optional[tzinfo] = None) -> datetime:
    """Convert a millisecond UNIX timestamp to an aware local datetime."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=tz)
    if tz is None:
        moment = moment.astimezone()
    return moment


def day_of_week(moment: datetime) -> int:
    """Day index with Sunday = 0."""
    return (moment.weekday() + 1) % 7


def iso_week(moment: datetime) -> int:
    """ISO-8601 week number (1-53)."""
    return moment.isocalendar()[1]


def week_start(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Monday 00:00 local of the week containing moment.

    The Monday is localized on its own, so its UTC offset is the one in
    force at Monday midnight rather than at moment. Every moment of one
    local week therefore maps to the same key, across DST changes too.

    Args:
        moment: Aware datetime
        tz: Zone for the week boundary (None = host local time)
    """
    local = moment.astimezone(tz)
    monday = local.date() - timedelta(days=local.weekday())
    midnight = datetime(monday.year, monday.month, monday.day)
    if tz is None:
        return midnight.astimezone()
    return midnight.replace(tzinfo=tz)
