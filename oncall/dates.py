import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from .constants import (
    DEFAULT_SHIFT_END_HOUR,
    DEFAULT_SHIFT_START_HOUR,
    ON_CALL_TIMEZONE,
)

Clock = Callable[[], datetime]
TzLike = Union[str, ZoneInfo]

_DDMMYYYY_RE = re.compile(r"([0-9]{2})/([0-9]{2})/([0-9]{4})")
_DATE_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _as_zone(tz: TzLike) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def parse_ddmmyyyy(value: Optional[str]) -> Optional[date]:
    """Parse a strict ``DD/MM/YYYY`` string.

    Returns ``None`` for anything else, including impossible calendar dates
    such as ``31/02/2025`` or ``01/13/2025``.
    """
    if value is None:
        return None
    match = _DDMMYYYY_RE.fullmatch(value.strip())
    if not match:
        return None
    day_raw, month_raw, year_raw = match.groups()
    try:
        return date(int(year_raw), int(month_raw), int(day_raw))
    except ValueError:
        return None


def to_date_key(value: Union[date, datetime]) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return value.isoformat()


def from_date_key(date_key: str) -> date:
    match = _DATE_KEY_RE.fullmatch(date_key or "")
    if not match:
        raise ValueError(f"Invalid date key: {date_key!r} (expected YYYY-MM-DD)")
    year, month, day_ = (int(part) for part in match.groups())
    try:
        return date(year, month, day_)
    except ValueError as exc:
        raise ValueError(f"Invalid date key: {date_key!r}") from exc


def add_days(date_key: str, days: int) -> str:
    return (from_date_key(date_key) + timedelta(days=days)).isoformat()


def utc_midnight(date_key: str) -> datetime:
    return datetime.combine(from_date_key(date_key), time(0, 0), tzinfo=timezone.utc)


def today_key(tz: TzLike = ON_CALL_TIMEZONE, now: Optional[datetime] = None) -> str:
    """Calendar date of ``now`` as seen in ``tz``, not in server-local time."""
    current = now or _utcnow()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(_as_zone(tz)).date().isoformat()


def local_wall_time(date_key: str, hour: int, tz: TzLike = ON_CALL_TIMEZONE) -> datetime:
    """Aware datetime for ``hour:00`` on ``date_key`` under the rules of ``tz`` on that date."""
    return datetime.combine(from_date_key(date_key), time(hour, 0), tzinfo=_as_zone(tz))


def shift_bounds_utc(
    date_key: str,
    tz: TzLike = ON_CALL_TIMEZONE,
    start_hour: int = DEFAULT_SHIFT_START_HOUR,
    end_hour: int = DEFAULT_SHIFT_END_HOUR,
) -> Tuple[datetime, datetime]:
    """UTC start and end of the overnight duty that begins on ``date_key``.

    The shift runs from ``start_hour`` local on D to ``end_hour`` local on D+1.
    Each end is resolved against the offset in force on its own date, so a
    shift spanning a DST switch is an hour longer or shorter in UTC.
    """
    zone = _as_zone(tz)
    start_local = local_wall_time(date_key, start_hour, zone)
    end_local = local_wall_time(add_days(date_key, 1), end_hour, zone)
    start = start_local.astimezone(timezone.utc)
    end = end_local.astimezone(timezone.utc)
    if end <= start:
        raise ValueError(f"Shift on {date_key} has a non-positive length.")
    return start, end


def date_range_keys(start_key: str, days_ahead: int) -> Tuple[str, str]:
    return start_key, add_days(start_key, max(0, days_ahead))


def first_of_previous_month(date_key: str) -> str:
    current = from_date_key(date_key)
    if current.month == 1:
        return date(current.year - 1, 12, 1).isoformat()
    return date(current.year, current.month - 1, 1).isoformat()
