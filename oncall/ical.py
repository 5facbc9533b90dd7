from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .config import EngineConfig
from .constants import ICS_FOLD_WIDTH, ICS_PRODID, ICS_UID_DOMAIN, ON_CALL_TIMEZONE
from .models import CalendarEvent, ShiftAssignment
from .stations import station_label

logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

# Static VTIMEZONE blocks, one per supported zone.
_VTIMEZONES: Dict[str, Tuple[str, ...]] = {
    "Asia/Jerusalem": (
        "BEGIN:VTIMEZONE",
        "TZID:Asia/Jerusalem",
        "X-LIC-LOCATION:Asia/Jerusalem",
        "BEGIN:STANDARD",
        "TZOFFSETFROM:+0300",
        "TZOFFSETTO:+0200",
        "TZNAME:IST",
        "DTSTART:19701025T020000",
        "RRULE:FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU",
        "END:STANDARD",
        "BEGIN:DAYLIGHT",
        "TZOFFSETFROM:+0200",
        "TZOFFSETTO:+0300",
        "TZNAME:IDT",
        "DTSTART:19700327T020000",
        "RRULE:FREQ=YEARLY;BYMONTH=3;BYMONTHDAY=23,24,25,26,27,28,29;BYDAY=FR",
        "END:DAYLIGHT",
        "END:VTIMEZONE",
    ),
}


def _escape_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;")
    )


def _format_dtstamp(dt: datetime) -> str:
    utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return utc.strftime("%Y%m%dT%H%M%SZ")


def _to_local(dt: datetime, zone: ZoneInfo) -> datetime:
    # Naive values are already wall-clock time in the calendar's zone.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=zone)
    return dt.astimezone(zone)


def _format_local(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def _fold_ical_line(line: str, width: int = ICS_FOLD_WIDTH) -> str:
    """Split a content line into ``width``-character chunks.

    Continuation chunks are prefixed with a single space, so every physical
    line is at most ``width + 1`` characters.
    """
    if len(line) <= width:
        return line
    chunks = [line[i:i + width] for i in range(0, len(line), width)]
    return "\r\n ".join(chunks)


def _vtimezone_lines(tz_name: str) -> List[str]:
    block = _VTIMEZONES.get(tz_name)
    if block is None:
        raise ValueError(f"No VTIMEZONE definition for {tz_name}")
    return list(block)


def simple_hash(value: str) -> str:
    """Deterministic 32-bit polynomial hash rendered in base 36.

    Runs over UTF-16 code units with signed 32-bit wrap-around.
    """
    h = 0
    encoded = value.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    h = abs(h)
    if h == 0:
        return "0"
    digits = []
    while h:
        h, rem = divmod(h, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def _event_lines(event: CalendarEvent, zone: ZoneInfo, tz_name: str, stamp: str) -> List[str]:
    start = _to_local(event.start, zone)
    end = _to_local(event.end, zone)
    if end <= start:
        raise ValueError(f"Event {event.uid} ends before it starts.")

    lines = [
        "BEGIN:VEVENT",
        _fold_ical_line(f"UID:{_escape_text(event.uid)}"),
        f"DTSTAMP:{stamp}",
        f"DTSTART;TZID={tz_name}:{_format_local(start)}",
        f"DTEND;TZID={tz_name}:{_format_local(end)}",
        _fold_ical_line(f"SUMMARY:{_escape_text(event.title)}"),
    ]
    if event.description:
        lines.append(_fold_ical_line(f"DESCRIPTION:{_escape_text(event.description)}"))
    if event.url:
        lines.append(f"URL:{event.url}")
    lines.append("END:VEVENT")
    return lines


def build_ics_calendar(
    cal_name: str,
    events: Iterable[CalendarEvent],
    *,
    tz: str = ON_CALL_TIMEZONE,
    dtstamp: Optional[datetime] = None,
) -> str:
    """Render events into a VCALENDAR document, every line CRLF-terminated.

    Event ``start``/``end`` must be present and ``end`` must be after
    ``start``; violations raise ``ValueError`` instead of producing a
    broken entry. Event UIDs are used as given.
    """
    zone = ZoneInfo(tz)
    stamp = _format_dtstamp(dtstamp or datetime.now(timezone.utc))

    lines: List[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
        _fold_ical_line(f"X-WR-CALNAME:{_escape_text(cal_name)}"),
        "METHOD:PUBLISH",
    ]
    lines.extend(_vtimezone_lines(tz))
    count = 0
    for event in events:
        lines.extend(_event_lines(event, zone, tz, stamp))
        count += 1
    lines.append("END:VCALENDAR")
    logger.debug("Rendered calendar %r with %d events", cal_name, count)
    return "\r\n".join(lines) + "\r\n"


def shift_uid(shift: ShiftAssignment) -> str:
    digest = simple_hash(f"{shift.personId}-{shift.dateKey}-{shift.stationKey}")
    return f"oncall-{shift.id}-{digest}@{ICS_UID_DOMAIN}"


def shift_to_event(shift: ShiftAssignment, url: Optional[str] = None) -> CalendarEvent:
    label = station_label(shift.stationKey)
    return CalendarEvent(
        uid=shift_uid(shift),
        title=f"On Call — {label}",
        description=f"{label}: {shift.personDisplayName}",
        url=url,
        start=shift.startAt,
        end=shift.endAt,
    )


def build_on_call_ics(
    shifts: Iterable[ShiftAssignment],
    person_name: Optional[str] = None,
    *,
    config: Optional[EngineConfig] = None,
    dtstamp: Optional[datetime] = None,
) -> str:
    cfg = config or EngineConfig()
    cal_name = f"{person_name} — On Call" if person_name else "On Call"
    events = [shift_to_event(shift) for shift in shifts]
    return build_ics_calendar(cal_name, events, tz=cfg.timezone, dtstamp=dtstamp)
