"""Error taxonomy for the reminders domain."""


class ReminderError(Exception):
    """Base exception for reminder operations."""
    pass


class ValidationError(ReminderError):
    """Input rejected before any side effect (blank title, unusable draft)."""
    pass


class ReminderNotFoundError(ValidationError):
    """No reminder with the requested id."""

    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id


class ScheduleInPastError(ValidationError):
    """A one-off reminder cannot be armed for a time that has already passed."""
    pass


# Same condition, raised from the lifecycle's create/toggle checks
PastScheduleError = ScheduleInPastError


class NeedsConfirmationError(ValidationError):
    """A fallback-parsed draft must be confirmed by the user before saving."""

    def __init__(self, draft):
        super().__init__("Could not understand your reminder. Please rephrase or add it manually.")
        self.draft = draft


class PermissionDeniedError(ReminderError):
    """Notification permission was refused.

    For edits the non-schedule changes are still saved; the saved reminder is
    attached as .reminder.
    """

    def __init__(self, message: str, reminder=None):
        super().__init__(message)
        self.reminder = reminder


class PersistenceError(ReminderError):
    """The reminder row could not be read or written."""
    pass


class ParseFailure(ReminderError):
    """The primary parser was unavailable or returned unusable output.

    Never escapes the resolver - it always degrades to the fallback parser.
    """
    pass
