"""Human-readable date/time helpers: "DD-Mon-YYYY" dates and "H:MM am/pm" times."""

import re
from datetime import date, datetime

from .models import RepeatMode

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

_DATE_RE = re.compile(r'^\s*(\d{1,2})-([A-Za-z]{3})-(\d{4})\s*$')
_TIME_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*(am|pm)\s*$', re.IGNORECASE)


def format_date(d: date) -> str:
    """Format as DD-Mon-YYYY, e.g. 05-Sep-2025."""
    return f"{d.day:02d}-{MONTH_NAMES[d.month - 1]}-{d.year}"


def format_time(dt: datetime) -> str:
    """Format as 12-hour H:MM am/pm, e.g. 0:05 -> 12:05 am."""
    period = "pm" if dt.hour >= 12 else "am"
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt.minute:02d} {period}"


def format_schedule(dt: datetime, repeat: RepeatMode = RepeatMode.NONE) -> str:
    """Render a reminder's schedule the way the reminder list shows it."""
    if repeat == RepeatMode.DAILY:
        return f"Daily at {format_time(dt)}"
    return f"{format_date(dt)} {format_time(dt)}"


def parse_date(text: str) -> date:
    """Parse DD-Mon-YYYY back into a date.

    Raises:
        ValueError: If text is not in DD-Mon-YYYY form or is not a real date
    """
    match = _DATE_RE.match(text)
    if not match:
        raise ValueError(f"Not a DD-Mon-YYYY date: {text!r}")

    month_str = match.group(2).capitalize()
    if month_str not in MONTH_NAMES:
        raise ValueError(f"Unknown month: {match.group(2)!r}")

    return date(int(match.group(3)), MONTH_NAMES.index(month_str) + 1, int(match.group(1)))


def parse_time(text: str) -> tuple[int, int]:
    """Parse H:MM am/pm into a 24-hour (hour, minute) tuple.

    Raises:
        ValueError: If text is not a valid 12-hour time
    """
    match = _TIME_RE.match(text)
    if not match:
        raise ValueError(f"Not an H:MM am/pm time: {text!r}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    if not 1 <= hour <= 12 or minute > 59:
        raise ValueError(f"Time out of range: {text!r}")

    return to_24_hour(hour, match.group(3)), minute


def to_24_hour(hour: int, period: str) -> int:
    """Standard 12-hour conversion: 12 am -> 0, 12 pm -> 12, other pm +12."""
    period = period.lower()
    if period == "pm" and hour != 12:
        return hour + 12
    if period == "am" and hour == 12:
        return 0
    return hour
