"""
Date and time helpers for the booking core.

All booking timestamps are naive local wall-clock values stored as
``YYYY-MM-DD HH:MM:SS`` strings. The helpers here are pure functions of
their inputs; callers pass ``now`` explicitly so tests can pin the clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DUE_INPUT_FORMAT = "%m/%d/%Y %H:%M"

DateLike = Union[datetime, str]


def now() -> datetime:
    """Current local wall-clock time truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def format_ts(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as a storage timestamp (None passes through)."""
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)


def parse_ts(value: Optional[DateLike]) -> Optional[datetime]:
    """
    Parse a storage timestamp.

    Accepts datetimes unchanged, ``YYYY-MM-DD HH:MM:SS`` strings and ISO 8601
    strings. Returns None for None/empty input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.fromisoformat(value)


def parse_due(due_date: str, due_time: str) -> datetime:
    """
    Combine a ``MM/DD/YYYY`` date and ``HH:MM`` time into a due datetime.

    Raises:
        ValueError: If either part does not match the expected format
    """
    return datetime.strptime(f"{due_date.strip()} {due_time.strip()}", DUE_INPUT_FORMAT)


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from ``start`` to ``end``."""
    return (end - start).total_seconds() / 3600


def will_expire_at(due: DateLike, created_at: DateLike) -> datetime:
    """
    Compute when an unaccepted booking expires.

    Tiers by the lead time between creation (or reopen) and due:
    - up to 24h: 90 minutes after creation, never later than due
    - up to 72h: 16 hours after creation
    - up to 90h: at due time
    - beyond: 48 hours before due

    Args:
        due: Booking due time
        created_at: Creation or reopen time

    Returns:
        Expiry datetime
    """
    due_dt = parse_ts(due)
    created_dt = parse_ts(created_at)
    lead_hours = hours_between(created_dt, due_dt)

    if lead_hours <= 24:
        return min(created_dt + timedelta(minutes=90), due_dt)
    if lead_hours <= 72:
        return created_dt + timedelta(hours=16)
    if lead_hours <= 90:
        return due_dt
    return due_dt - timedelta(hours=48)


def session_interval(due: DateLike, ended_at: DateLike) -> str:
    """
    Elapsed time between due and end as ``HH:MM:SS``.

    The magnitude is used, so an end before due still yields a positive
    interval (matches how no-show sessions are recorded).
    """
    seconds = int(abs((parse_ts(ended_at) - parse_ts(due)).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def session_time_text(session_time: str) -> str:
    """Render ``HH:MM[:SS]`` as ``"HH tim MM min"`` for emails."""
    parts = session_time.split(":")
    hours = parts[0]
    minutes = parts[1] if len(parts) > 1 else "00"
    return f"{hours} tim {minutes} min"


def convert_to_hours_mins(minutes: int, fmt: str = "{:02d}h {:02d}min") -> str:
    """
    Convert a number of minutes to a compact hour/minute label.

    Examples:
        >>> convert_to_hours_mins(45)
        '45min'
        >>> convert_to_hours_mins(60)
        '1h'
        >>> convert_to_hours_mins(90)
        '01h 30min'
    """
    if minutes < 60:
        return f"{minutes}min"
    if minutes == 60:
        return "1h"
    hours, rest = divmod(minutes, 60)
    return fmt.format(hours, rest)


def is_night_time(moment: datetime, night_start_hour: int, night_end_hour: int) -> bool:
    """
    Check whether ``moment`` falls inside the night window.

    The window may wrap midnight (e.g. 22 -> 6).
    """
    hour = moment.hour
    if night_start_hour == night_end_hour:
        return False
    if night_start_hour < night_end_hour:
        return night_start_hour <= hour < night_end_hour
    return hour >= night_start_hour or hour < night_end_hour


def next_business_time(moment: datetime, business_start_hour: int) -> datetime:
    """Next instant at ``business_start_hour``:00 strictly after ``moment``."""
    candidate = moment.replace(hour=business_start_hour, minute=0, second=0, microsecond=0)
    if candidate <= moment:
        candidate += timedelta(days=1)
    return candidate


def to_send_after_string(moment: datetime, utc_offset_hours: float) -> str:
    """Render a local time as an ISO 8601 string with the configured offset."""
    tz = timezone(timedelta(hours=utc_offset_hours))
    return moment.replace(tzinfo=tz).isoformat()
