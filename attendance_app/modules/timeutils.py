"""
Time helpers for the attendance system.

All stored and compared timestamps are timezone-aware UTC. Conversion to a
display timezone happens only when a label is rendered.
"""

from datetime import datetime, timezone, tzinfo
from typing import Union
from zoneinfo import ZoneInfo

MONTH_ABBREVIATIONS = (
    'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
    'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec'
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are taken to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into aware UTC.

    Accepts the trailing ``Z`` emitted by JavaScript's ``toISOString`` and the
    other ISO-8601 forms understood by ``datetime.fromisoformat`` on 3.11+,
    such as ``+0800`` offsets and short fractional seconds.

    Raises:
        ValueError: if the string is not a valid ISO-8601 timestamp
        OverflowError: if the UTC instant falls outside the datetime range
    """
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(text))


def format_timestamp(value: datetime) -> str:
    """Serialize to an ISO-8601 UTC string with a ``Z`` suffix."""
    return ensure_utc(value).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == 'UTC' else ZoneInfo(tz)
    return tz


def to_display_time(value: datetime, tz: Union[str, tzinfo, None] = None) -> datetime:
    return ensure_utc(value).astimezone(resolve_timezone(tz))


def session_date_label(value: datetime, tz: Union[str, tzinfo, None] = None,
                       include_year: bool = True) -> str:
    """
    Render a session timestamp as ``"Jan 5, 2025"`` (or ``"Jan 5"``).

    Month names are fixed English abbreviations so the label does not depend
    on the process locale.
    """
    local = to_display_time(value, tz)
    label = f"{MONTH_ABBREVIATIONS[local.month - 1]} {local.day}"
    if include_year:
        label = f"{label}, {local.year}"
    return label
