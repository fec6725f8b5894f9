"""
Timezone utilities for kickoff times.

The FPL API sends kickoff times as UTC ISO-8601 strings ("2024-08-16T19:00:00Z").
They are stored as sent and converted to the local zone only when projected.
"""
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

UTC = timezone.utc


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Resolve an IANA zone name.

    Returns:
        The zone, or None (meaning the system local zone) for an empty name

    Raises:
        zoneinfo.ZoneInfoNotFoundError: If the name is unknown
    """
    if not name:
        return None
    return ZoneInfo(name)


def parse_kickoff_time(value: str) -> datetime:
    """
    Parse an API kickoff time into an aware UTC datetime.

    Only full instants are accepted: a date and time with a "Z" or numeric
    offset. Local date-times and bare dates name no single moment.

    Raises:
        ValueError: If the value is not an ISO-8601 instant
    """
    if "T" not in value and " " not in value:
        raise ValueError(f"kickoff time {value!r} has no time part")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"kickoff time {value!r} has no UTC offset")
    return parsed.astimezone(UTC)


def to_local_datetime(value: str, local_tz: Optional[tzinfo] = None) -> datetime:
    """
    Convert an API kickoff time to a naive local date-time.

    Args:
        value: ISO-8601 kickoff time
        local_tz: Target zone, None for the system local zone

    Returns:
        Naive datetime on the local calendar/clock

    Example:
        >>> to_local_datetime("2024-01-01T00:00:00Z", ZoneInfo("Europe/Paris"))
        datetime.datetime(2024, 1, 1, 1, 0)
    """
    utc_datetime = parse_kickoff_time(value)
    if local_tz is None:
        local = utc_datetime.astimezone()
    else:
        local = utc_datetime.astimezone(local_tz)
    return local.replace(tzinfo=None)
