"""Reminder data structures.

All datetimes are naive local wall-clock times. Persisted rows store them as
integer epoch milliseconds.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional


class RepeatMode(str, Enum):
    """How a reminder rolls over after it fires."""
    NONE = "none"
    DAILY = "daily"

    @classmethod
    def parse(cls, value: Any) -> "RepeatMode":
        """Lenient conversion used for rows and parser output; unknown values mean none."""
        if isinstance(value, RepeatMode):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.DAILY.value:
            return cls.DAILY
        return cls.NONE


def to_epoch_ms(dt: datetime) -> int:
    """Naive local datetime -> epoch milliseconds."""
    return int(time.mktime(dt.timetuple())) * 1000 + dt.microsecond // 1000


def from_epoch_ms(ms: int) -> datetime:
    """Epoch milliseconds -> naive local datetime."""
    return datetime.fromtimestamp(ms // 1000) + timedelta(milliseconds=ms % 1000)


def truncate_to_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


@dataclass
class Reminder:
    """A persisted reminder.

    For daily reminders scheduled_time holds the next occurrence, not the
    original creation time.
    """
    id: str
    title: str
    scheduled_time: datetime
    is_active: bool
    created_at: datetime
    updated_at: datetime
    repeat: RepeatMode = RepeatMode.NONE
    description: Optional[str] = None
    notification_id: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Reminder ID cannot be empty")
        if not self.title or not self.title.strip():
            raise ValueError("Reminder title cannot be empty")
        self.repeat = RepeatMode.parse(self.repeat)

    @property
    def is_daily(self) -> bool:
        return self.repeat == RepeatMode.DAILY

    def is_past_due(self, now: datetime) -> bool:
        """True for an active one-off reminder whose time has passed."""
        return self.is_active and not self.is_daily and self.scheduled_time <= now

    def copy(self, **changes) -> "Reminder":
        return replace(self, **changes)

    def to_row(self) -> dict:
        """Convert to a storage row (camelCase columns, epoch ms, 0/1 flags)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "scheduledTime": to_epoch_ms(self.scheduled_time),
            "isActive": 1 if self.is_active else 0,
            "createdAt": to_epoch_ms(self.created_at),
            "updatedAt": to_epoch_ms(self.updated_at),
            "notificationId": self.notification_id,
            "repeat": self.repeat.value,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Reminder":
        return cls(
            id=row["id"],
            title=row["title"],
            description=row.get("description"),
            scheduled_time=from_epoch_ms(row["scheduledTime"]),
            is_active=bool(row["isActive"]),
            created_at=from_epoch_ms(row["createdAt"]),
            updated_at=from_epoch_ms(row["updatedAt"]),
            notification_id=row.get("notificationId"),
            repeat=RepeatMode.parse(row.get("repeat") or RepeatMode.NONE.value),
        )

    def to_dict(self) -> dict:
        """JSON-serializable view for the HTTP surface."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "scheduled_time": self.scheduled_time.isoformat(),
            "is_active": self.is_active,
            "repeat": self.repeat.value,
            "notification_id": self.notification_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def new_reminder_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ParsedScheduleFields:
    """Structured output of the text resolver (never persisted)."""
    title: str
    description: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM, 24-hour
    is_relative_time: bool = False
    relative_minutes: Optional[int] = None
    repeat: RepeatMode = RepeatMode.NONE
    used_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "time": self.time,
            "isRelativeTime": self.is_relative_time,
            "relativeMinutes": self.relative_minutes,
            "repeat": self.repeat.value,
            "usedFallback": self.used_fallback,
        }


@dataclass
class ReminderForm:
    """Values confirmed on the create/edit form."""
    title: str
    scheduled_time: datetime
    description: Optional[str] = None
    repeat: RepeatMode = RepeatMode.NONE

    @classmethod
    def from_parsed(cls, fields: ParsedScheduleFields, now: datetime) -> "ReminderForm":
        """Pre-fill the form from parser output."""
        # Import here to avoid circular imports
        from .resolver import compute_scheduled_instant

        return cls(
            title=fields.title,
            description=fields.description,
            scheduled_time=truncate_to_minute(compute_scheduled_instant(fields, now)),
            repeat=fields.repeat,
        )


@dataclass
class TextDraft:
    """A chat message turned into a pre-filled form awaiting confirmation."""
    text: str
    fields: ParsedScheduleFields
    form: ReminderForm

    @property
    def needs_review(self) -> bool:
        # Fallback output is only trusted when it picked up a daily cue
        return self.fields.used_fallback and self.fields.repeat != RepeatMode.DAILY


@dataclass(frozen=True)
class TriggerHandle:
    """An armed trigger: the boundary's opaque id and the instant it will fire."""
    id: str
    fire_at: datetime


@dataclass
class NotificationContent:
    title: str
    body: str
    data: dict = field(default_factory=dict)
    channel_id: Optional[str] = None
