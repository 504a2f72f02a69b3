"""Personal reminders: natural-language scheduling and the reminder lifecycle.

Triggers are APScheduler date jobs; reminders persist in SQLite.
"""

from .errors import (
    ReminderError,
    ValidationError,
    ReminderNotFoundError,
    ScheduleInPastError,
    PastScheduleError,
    NeedsConfirmationError,
    PermissionDeniedError,
    PersistenceError,
    ParseFailure,
)
from .models import Reminder, RepeatMode, ParsedScheduleFields, ReminderForm, TextDraft, TriggerHandle
from .parser import parse_reminder
from .resolver import ScheduleResolver, compute_scheduled_instant, build_default_resolver
from .triggers import TriggerScheduler
from .notifications import NotificationCenter, ChannelSetup
from .store import ReminderStore
from .lifecycle import ReminderLifecycle
from .service import ReminderService, build_service

__all__ = [
    "ReminderError",
    "ValidationError",
    "ReminderNotFoundError",
    "ScheduleInPastError",
    "PastScheduleError",
    "NeedsConfirmationError",
    "PermissionDeniedError",
    "PersistenceError",
    "ParseFailure",
    "Reminder",
    "RepeatMode",
    "ParsedScheduleFields",
    "ReminderForm",
    "TextDraft",
    "TriggerHandle",
    "parse_reminder",
    "ScheduleResolver",
    "compute_scheduled_instant",
    "build_default_resolver",
    "TriggerScheduler",
    "NotificationCenter",
    "ChannelSetup",
    "ReminderStore",
    "ReminderLifecycle",
    "ReminderService",
    "build_service",
]
