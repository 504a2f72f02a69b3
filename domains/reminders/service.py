"""Operations exposed to the UI: create, edit, toggle, delete, list and search."""

import inspect
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from logger import logger
from .errors import NeedsConfirmationError
from .formatting import format_schedule
from .lifecycle import ReminderLifecycle
from .models import Reminder, ReminderForm, TextDraft
from .notifications import NotificationCenter
from .resolver import ScheduleResolver
from .store import ReminderStore
from .triggers import TriggerScheduler

# Receives the pre-filled draft, returns the confirmed form or None to abandon
ConfirmCallback = Callable[[TextDraft], Union[Optional[ReminderForm], Awaitable[Optional[ReminderForm]]]]


def _sort_key(reminder: Reminder):
    # Daily first, then newest scheduled time first
    return (0 if reminder.is_daily else 1, -reminder.scheduled_time.timestamp())


class ReminderService:
    """Facade over the resolver and lifecycle."""

    def __init__(
        self,
        store: ReminderStore,
        notifications: NotificationCenter,
        resolver: Optional[ScheduleResolver] = None
    ):
        self.store = store
        self.notifications = notifications
        self.resolver = resolver or ScheduleResolver()
        self.triggers = TriggerScheduler(notifications)
        self.lifecycle = ReminderLifecycle(store, self.triggers)

        notifications.add_received_listener(self.lifecycle.handle_notification_event)
        notifications.add_response_listener(self.lifecycle.handle_notification_event)
        notifications.add_active_listener(self.became_active)

    async def start(self, now: Optional[datetime] = None) -> None:
        """Open storage, set up the notification channel, load and re-arm reminders."""
        await self.store.init_db()
        self.notifications.ensure_channel()
        await self.lifecycle.load()
        await self.lifecycle.restore_triggers(now)

    async def stop(self) -> None:
        await self.notifications.cancel_all()
        if self.notifications.scheduler.running:
            self.notifications.scheduler.shutdown(wait=False)
        self.store.close()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_from_form(self, form: ReminderForm, now: Optional[datetime] = None) -> Reminder:
        return await self.lifecycle.create(form, now)

    async def draft_from_text(self, text: str, now: Optional[datetime] = None) -> TextDraft:
        """Resolve chat text into a pre-filled form for confirmation."""
        now = now or datetime.now()
        fields = await self.resolver.resolve(text, now)
        return TextDraft(text=text, fields=fields, form=ReminderForm.from_parsed(fields, now))

    async def create_from_text(
        self,
        text: str,
        confirm: Optional[ConfirmCallback] = None,
        now: Optional[datetime] = None
    ) -> Optional[Reminder]:
        """Resolve text, let the user confirm the form, then create.

        Args:
            text: Chat input
            confirm: Called with the draft; returns the (possibly edited) form,
                or None if the user abandoned it
            now: Current time (defaults to now)

        Returns:
            The created reminder, or None if confirmation was declined

        Raises:
            NeedsConfirmationError: No confirm callback and the draft came from
                the fallback parser without a daily cue
        """
        now = now or datetime.now()
        draft = await self.draft_from_text(text, now)

        if confirm is None:
            if draft.needs_review:
                raise NeedsConfirmationError(draft)
            form = draft.form
        else:
            form = confirm(draft)
            if inspect.isawaitable(form):
                form = await form
            if form is None:
                logger.info("Reminder draft abandoned by user")
                return None

        return await self.lifecycle.create(form, now)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def toggle(self, reminder_id: str, on: bool, now: Optional[datetime] = None) -> Reminder:
        return await self.lifecycle.toggle(reminder_id, on, now)

    async def edit(self, reminder_id: str, form: ReminderForm, now: Optional[datetime] = None) -> Reminder:
        return await self.lifecycle.edit(reminder_id, form, now)

    async def delete(self, reminder_id: str) -> None:
        await self.lifecycle.delete(reminder_id)

    async def became_active(self, now: Optional[datetime] = None) -> list[Reminder]:
        """App came to the foreground: deactivate one-off reminders that fired unseen."""
        return await self.lifecycle.reconcile_on_foreground(now)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, reminder_id: str) -> Reminder:
        return self.lifecycle.get(reminder_id)

    def list_active(self) -> list[Reminder]:
        return sorted((r for r in self.lifecycle.all() if r.is_active), key=_sort_key)

    def list_inactive(self) -> list[Reminder]:
        return sorted((r for r in self.lifecycle.all() if not r.is_active), key=_sort_key)

    def search(self, query: str) -> list[Reminder]:
        """Case-insensitive substring match over title and description."""
        needle = (query or "").strip().lower()
        if not needle:
            return sorted(self.lifecycle.all(), key=_sort_key)

        return sorted(
            (
                r for r in self.lifecycle.all()
                if needle in r.title.lower() or needle in (r.description or "").lower()
            ),
            key=_sort_key
        )

    @staticmethod
    def describe(reminder: Reminder) -> str:
        return format_schedule(reminder.scheduled_time, reminder.repeat)


def build_service() -> ReminderService:
    """Service wired from global configuration."""
    from .notifications import build_presenter
    from .resolver import build_default_resolver

    return ReminderService(
        store=ReminderStore(),
        notifications=NotificationCenter(presenter=build_presenter()),
        resolver=build_default_resolver(),
    )
