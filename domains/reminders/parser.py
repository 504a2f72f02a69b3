"""Rule-based reminder text parser.

Used whenever the primary (model-backed) parser is unavailable or returns
something unusable. Deterministic and total: every input, including the empty
string, produces a result with a non-empty title and used_fallback=True.

Extraction runs in a fixed order, each step removing what it matched from a
working copy of the text before the next step looks at it:

1. time of day   ("3:30 pm", "7 AM", "at 14:30", "at 9 pm")
2. date          ("today", "tomorrow", "09/15/2025", "2025-09-15")
3. relative time ("in 30 minutes", "in 2 hours")
4. daily repeat  ("every day", "daily", ...) - detected on the full text, not removed
5. title cleanup (what's left, minus standalone prepositions)
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

from . import config
from .formatting import to_24_hour
from .models import ParsedScheduleFields, RepeatMode

# First match wins, in this order
TIME_PATTERNS = [
    re.compile(r'\b(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<period>am|pm)\b', re.IGNORECASE),
    re.compile(r'\b(?P<hour>\d{1,2})\s*(?P<period>am|pm)\b', re.IGNORECASE),
    re.compile(r'\bat\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})\b', re.IGNORECASE),
    re.compile(r'\bat\s*(?P<hour>\d{1,2})\s*(?P<period>am|pm)\b', re.IGNORECASE),
]

KEYWORD_DATE_PATTERN = re.compile(r'\b(today|tomorrow)\b', re.IGNORECASE)
US_DATE_PATTERN = re.compile(r'\b(\d{1,2})/(\d{1,2})/(\d{4})\b')
ISO_DATE_PATTERN = re.compile(r'\b(\d{4})-(\d{1,2})-(\d{1,2})\b')

RELATIVE_PATTERN = re.compile(r'\bin\s*(\d+)\s*(minute|hour)s?\b', re.IGNORECASE)

DAILY_PATTERN = re.compile(
    r'\b(' + '|'.join(re.escape(p).replace(r'\ ', r'\s+') for p in config.DAILY_PHRASES) + r')\b',
    re.IGNORECASE
)

STOPWORD_PATTERN = re.compile(r'\b(' + '|'.join(config.TITLE_STOPWORDS) + r')\b', re.IGNORECASE)


def parse_reminder(text: str, now: Optional[datetime] = None) -> ParsedScheduleFields:
    """Parse reminder text without any external service.

    Examples:
    - "Take medicine in 30 minutes" -> relative, 30 minutes
    - "Exercise every day at 7 AM" -> daily, 07:00
    - "Call doctor at 3 PM tomorrow" -> "Call doctor", tomorrow, 15:00

    Args:
        text: Free-text reminder input (may be empty)
        now: Current time, used to resolve "today"/"tomorrow" (defaults to now)

    Returns:
        ParsedScheduleFields with used_fallback=True
    """
    now = now or datetime.now()
    working = (text or "").strip()

    time_str, working = _extract_time(working)
    date_str, working = _extract_date(working, now)
    relative_minutes, working = _extract_relative(working)

    return ParsedScheduleFields(
        title=_clean_title(working),
        description=None,
        date=date_str,
        time=time_str,
        is_relative_time=relative_minutes is not None,
        relative_minutes=relative_minutes,
        repeat=detect_repeat(text or ""),
        used_fallback=True,
    )


def detect_repeat(text: str) -> RepeatMode:
    """Daily if the text contains any daily-repeat phrase."""
    return RepeatMode.DAILY if DAILY_PATTERN.search(text) else RepeatMode.NONE


def _consume(text: str, match: re.Match) -> str:
    return f"{text[:match.start()]} {text[match.end():]}"


def _extract_time(text: str) -> tuple[Optional[str], str]:
    """Find a time of day and return it as HH:MM (24-hour).

    Am/pm matches are always minute-normalised, so "1 PM" -> "13:00".
    Out-of-range values ("13 pm", "at 25:00") are skipped.
    """
    for pattern in TIME_PATTERNS:
        for match in pattern.finditer(text):
            hour = int(match.group("hour"))
            minute = int(match.groupdict().get("minute") or 0)
            period = match.groupdict().get("period")

            if period:
                if not 1 <= hour <= 12:
                    continue
                hour = to_24_hour(hour, period)
            elif hour > 23:
                continue
            if minute > 59:
                continue

            return f"{hour:02d}:{minute:02d}", _consume(text, match)

    return None, text


def _extract_date(text: str, now: datetime) -> tuple[Optional[str], str]:
    """Find a date keyword or explicit date and return it as YYYY-MM-DD."""
    match = KEYWORD_DATE_PATTERN.search(text)
    if match:
        target = now.date()
        if match.group(1).lower() == "tomorrow":
            target += timedelta(days=1)
        return target.isoformat(), _consume(text, match)

    for pattern, order in ((US_DATE_PATTERN, ("month", "day", "year")),
                           (ISO_DATE_PATTERN, ("year", "month", "day"))):
        for match in pattern.finditer(text):
            parts = dict(zip(order, (int(g) for g in match.groups())))
            try:
                target = date(parts["year"], parts["month"], parts["day"])
            except ValueError:
                continue
            return target.isoformat(), _consume(text, match)

    return None, text


def _extract_relative(text: str) -> tuple[Optional[int], str]:
    """Find "in N minutes/hours" and return the offset in minutes.

    Offsets beyond MAX_RELATIVE_MINUTES are skipped like out-of-range times.
    """
    for match in RELATIVE_PATTERN.finditer(text):
        amount = int(match.group(1))
        if match.group(2).lower() == "hour":
            amount *= 60
        if amount > config.MAX_RELATIVE_MINUTES:
            continue
        return amount, _consume(text, match)

    return None, text


def _clean_title(text: str) -> str:
    title = STOPWORD_PATTERN.sub('', text)
    title = re.sub(r'\s+', ' ', title).strip()
    title = title.strip('.,;:!-').strip()
    if not title:
        return config.FALLBACK_TITLE
    return title[0].upper() + title[1:]
