"""Turn free text into schedule fields, and schedule fields into an instant.

Two parsers implement the same ScheduleParser shape:
- ClaudeScheduleParser: asks the model for a strict JSON object
- RuleBasedScheduleParser: the deterministic regex parser

ScheduleResolver tries the first and always degrades to the second, so callers
only ever see a result; provenance is carried in used_fallback.
"""

import json
import re
from datetime import date, datetime, timedelta
from typing import Optional, Protocol

from logger import logger
from . import config
from .errors import ParseFailure, ValidationError
from .models import ParsedScheduleFields, RepeatMode
from .parser import parse_reminder

JSON_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')
ISO_DATE_PATTERN = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
HHMM_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')

PROMPT_TEMPLATE = """You are a reminder parsing assistant. Parse the following natural language text into a structured reminder format.

Current date: {current_date}
Current time: {current_time}

User input: "{user_input}"

Parse this into a JSON object with the following structure:
{{
  "title": "Brief, clear title for the reminder",
  "description": "Optional detailed description (null if none)",
  "date": "YYYY-MM-DD format (null if not specified or unclear)",
  "time": "HH:MM format in 24-hour (null if not specified)",
  "isRelativeTime": boolean (true if time is relative like 'in 30 minutes'),
  "relativeMinutes": number (minutes from now if isRelativeTime is true, null otherwise),
  "repeat": "daily" if the reminder repeats every day, otherwise "none",
  "usedFallback": boolean (true if the input has no meaning to create a reminder for)
}}

Rules:
1. Extract a concise, actionable title (max 50 characters)
2. Include description only if there are specific details beyond the title
3. For dates: interpret "today", "tomorrow", relative dates, and specific dates
4. For times: interpret "morning" as 09:00, "afternoon" as 14:00, "evening" as 18:00
5. Handle relative times like "in 30 minutes", "in 2 hours"
6. "every day", "daily", "every morning" and similar mean "repeat": "daily"
7. If date/time is ambiguous or missing, set to null
8. Return ONLY the JSON object, no additional text

Examples:
- "Call mom tomorrow at 2pm" -> {{"title": "Call mom", "description": null, "date": "tomorrow", "time": "14:00", "isRelativeTime": false, "relativeMinutes": null, "repeat": "none", "usedFallback": false}}
- "Meeting in 30 minutes" -> {{"title": "Meeting", "description": null, "date": null, "time": null, "isRelativeTime": true, "relativeMinutes": 30, "repeat": "none", "usedFallback": false}}
- "Buy groceries milk eggs bread" -> {{"title": "Buy groceries", "description": "milk, eggs, bread", "date": null, "time": null, "isRelativeTime": false, "relativeMinutes": null, "repeat": "none", "usedFallback": false}}

Response (JSON only):"""


class TextGenerator(Protocol):
    """Primary text parser boundary: prompt in, raw (untrusted) text out."""

    async def generate(self, prompt: str) -> str:
        ...


class ScheduleParser(Protocol):
    async def parse(self, text: str, now: datetime) -> ParsedScheduleFields:
        """Parse text or raise ParseFailure."""
        ...


class ClaudeScheduleParser:
    """Model-backed parser. Any unusable output raises ParseFailure."""

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    @staticmethod
    def build_prompt(text: str, now: datetime) -> str:
        return PROMPT_TEMPLATE.format(
            current_date=now.strftime("%Y-%m-%d"),
            current_time=now.strftime("%H:%M"),
            user_input=text,
        )

    async def parse(self, text: str, now: datetime) -> ParsedScheduleFields:
        raw = await self.generator.generate(self.build_prompt(text, now))
        return parse_model_response(raw, now)


class RuleBasedScheduleParser:
    """Deterministic parser; never raises."""

    async def parse(self, text: str, now: datetime) -> ParsedScheduleFields:
        return parse_reminder(text, now)


def parse_model_response(raw: str, now: datetime) -> ParsedScheduleFields:
    """Extract and validate the first JSON object in a model response.

    Args:
        raw: Raw response text
        now: Current time, for resolving "today"/"tomorrow"

    Returns:
        ParsedScheduleFields with used_fallback=False

    Raises:
        ParseFailure: No JSON object, invalid JSON, or unusable field values
    """
    match = JSON_OBJECT_PATTERN.search(raw or "")
    if not match:
        raise ParseFailure("No JSON found in response")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseFailure(f"Invalid JSON in response: {e}") from e

    if not isinstance(parsed, dict):
        raise ParseFailure("Response JSON is not an object")

    # The model flags input it could not make sense of
    if parsed.get("usedFallback") is True:
        raise ParseFailure("Model could not interpret the input")

    relative_minutes = parsed.get("relativeMinutes")
    if relative_minutes is not None:
        try:
            relative_minutes = int(relative_minutes)
        except (TypeError, ValueError) as e:
            raise ParseFailure(f"Bad relativeMinutes: {relative_minutes!r}") from e
        if not 0 <= relative_minutes <= config.MAX_RELATIVE_MINUTES:
            raise ParseFailure(f"relativeMinutes out of range: {relative_minutes}")

    title = parsed.get("title")
    title = title.strip() if isinstance(title, str) else ""

    return ParsedScheduleFields(
        title=title or config.FALLBACK_TITLE,
        description=parsed.get("description") or None,
        date=_normalize_date(parsed.get("date"), now),
        time=_normalize_time(parsed.get("time")),
        is_relative_time=bool(parsed.get("isRelativeTime")),
        relative_minutes=relative_minutes,
        repeat=_normalize_repeat(parsed),
        used_fallback=False,
    )


def _normalize_date(value, now: datetime) -> Optional[str]:
    if not value:
        return None
    if not isinstance(value, str):
        raise ParseFailure(f"Bad date: {value!r}")

    value = value.strip().lower()
    if value == "today":
        return now.date().isoformat()
    if value == "tomorrow":
        return (now.date() + timedelta(days=1)).isoformat()

    match = ISO_DATE_PATTERN.match(value)
    if not match:
        raise ParseFailure(f"Bad date: {value!r}")
    try:
        return date(*(int(g) for g in match.groups())).isoformat()
    except ValueError as e:
        raise ParseFailure(f"Bad date: {value!r}") from e


def _normalize_time(value) -> Optional[str]:
    if not value:
        return None
    match = HHMM_PATTERN.match(str(value).strip())
    if not match:
        raise ParseFailure(f"Bad time: {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ParseFailure(f"Bad time: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def _normalize_repeat(parsed: dict) -> RepeatMode:
    # Older prompt versions answered with isRecurring/recurringType
    if parsed.get("isRecurring") and parsed.get("recurringType") == "daily":
        return RepeatMode.DAILY
    return RepeatMode.parse(parsed.get("repeat"))


class ScheduleResolver:
    """Resolve free text, degrading to the rule-based parser on any failure."""

    def __init__(
        self,
        primary: Optional[ScheduleParser] = None,
        fallback: Optional[ScheduleParser] = None
    ):
        self.primary = primary
        self.fallback = fallback or RuleBasedScheduleParser()

    async def resolve(self, text: str, now: Optional[datetime] = None) -> ParsedScheduleFields:
        """Parse text into schedule fields. Never raises.

        Args:
            text: Free-text reminder input
            now: Current time (defaults to now)

        Returns:
            ParsedScheduleFields; used_fallback is True when the rule-based
            parser produced the result
        """
        now = now or datetime.now()

        if self.primary is not None:
            try:
                fields = await self.primary.parse(text, now)
                logger.info(f"Parsed reminder text with primary parser: '{fields.title}'")
                return fields
            except ParseFailure as e:
                logger.warning(f"Primary parser output unusable, falling back: {e}")
            except Exception as e:
                logger.warning(f"Primary parser failed, falling back: {e}")

        return await self.fallback.parse(text, now)


def compute_scheduled_instant(fields: ParsedScheduleFields, now: datetime) -> datetime:
    """Map schedule fields to the absolute instant the reminder should fire.

    Pure: the same fields and now always give the same result. Knows nothing
    about repeat - daily handling is the trigger scheduler's job.

    Args:
        fields: Parsed schedule fields
        now: Reference time

    Returns:
        Target instant (strictly after now unless a zero relative offset)

    Raises:
        ValidationError: The instant falls outside the representable range
    """
    try:
        return _compute_instant(fields, now)
    except OverflowError as e:
        raise ValidationError("Reminder time is out of range") from e


def _compute_instant(fields: ParsedScheduleFields, now: datetime) -> datetime:
    if fields.is_relative_time and fields.relative_minutes is not None:
        return now + timedelta(minutes=fields.relative_minutes)

    if fields.date:
        target = datetime.fromisoformat(fields.date).replace(hour=0, minute=0, second=0, microsecond=0)
    else:
        target = now

    if fields.time:
        hour, minute = (int(p) for p in fields.time.split(":"))
        target = target.replace(hour=hour, minute=minute, second=0, microsecond=0)
    elif not fields.date:
        target = (now + timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)

    if target <= now:
        target += timedelta(days=1)

    return target


def build_default_resolver() -> ScheduleResolver:
    """Resolver wired to Claude when an API key is configured."""
    from config import ANTHROPIC_API_KEY

    if not ANTHROPIC_API_KEY:
        logger.warning("No Claude API key configured - reminder text uses the rule-based parser only")
        return ScheduleResolver()

    from claude_client import ClaudeClient
    return ScheduleResolver(primary=ClaudeScheduleParser(ClaudeClient(api_key=ANTHROPIC_API_KEY)))
