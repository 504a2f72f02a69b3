"""Reminder lifecycle: activation rules, rollover and reconciliation.

A reminder is Active (trigger armed, or a daily re-arm pending) or Inactive
(no trigger). Every mutation of one reminder runs under that reminder's lock,
so a fire event, a foreground reconciliation and a user edit can never
interleave into an inconsistent row.

Transitions:
- create:  validate -> arm -> persist (no row if arming fails)
- toggle:  on = arm (one-off must be in the future), off = cancel
- edit:    cancel -> apply -> auto-deactivate past one-offs -> re-arm if active
- delete:  cancel -> remove row
- fired:   one-off -> Inactive; daily -> re-arm for tomorrow, stays Active
- foreground reconciliation: past-due one-offs -> Inactive
"""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Optional

from logger import logger
from .errors import (
    PastScheduleError,
    PermissionDeniedError,
    PersistenceError,
    ReminderNotFoundError,
    ValidationError,
)
from .models import Reminder, ReminderForm, RepeatMode, new_reminder_id, truncate_to_minute
from .store import ReminderStore
from .triggers import TriggerScheduler


class ReminderLifecycle:
    """Owns the in-memory reminder collection and every transition on it."""

    def __init__(self, store: ReminderStore, triggers: TriggerScheduler):
        self.store = store
        self.triggers = triggers
        self._reminders: dict[str, Reminder] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Load all persisted reminders into memory.

        Returns:
            Count of reminders loaded
        """
        reminders = await self.store.read_all()
        self._reminders = {r.id: r for r in reminders}
        logger.info(f"Loaded {len(reminders)} reminders")
        return len(reminders)

    def all(self) -> list[Reminder]:
        return list(self._reminders.values())

    def get(self, reminder_id: str) -> Reminder:
        reminder = self._reminders.get(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    # ------------------------------------------------------------------
    # User-initiated transitions
    # ------------------------------------------------------------------

    async def create(self, form: ReminderForm, now: Optional[datetime] = None) -> Reminder:
        """Create, arm and persist a reminder.

        Raises:
            ValidationError: Blank title
            PastScheduleError: One-off reminder not in the future
            PermissionDeniedError: Notifications refused (nothing persisted)
            PersistenceError: Row could not be written (trigger rolled back)
        """
        now = now or datetime.now()
        title = _clean_title(form.title)
        scheduled_time = truncate_to_minute(form.scheduled_time)
        repeat = RepeatMode.parse(form.repeat)

        if repeat == RepeatMode.NONE and scheduled_time <= now:
            raise PastScheduleError("Please select a future date and time")

        reminder = Reminder(
            id=new_reminder_id(),
            title=title,
            description=_clean_description(form.description),
            scheduled_time=scheduled_time,
            is_active=True,
            created_at=now,
            updated_at=now,
            repeat=repeat,
        )

        async with self._locks[reminder.id]:
            handle = await self.triggers.arm(reminder, now)
            if handle is None:
                raise PermissionDeniedError("Please enable notifications to add reminders")

            reminder.notification_id = handle.id
            if reminder.is_daily:
                reminder.scheduled_time = handle.fire_at

            await self._write(reminder, new=True, armed=handle.id)
            self._reminders[reminder.id] = reminder

        logger.info(f"Created reminder {reminder.id}: '{reminder.title}' at {reminder.scheduled_time} ({reminder.repeat.value})")
        return reminder

    async def toggle(self, reminder_id: str, on: bool, now: Optional[datetime] = None) -> Reminder:
        """Activate or deactivate a reminder.

        Turning off cancels the trigger but keeps the repeat mode, so a daily
        reminder resumes as daily when turned back on.

        Raises:
            ReminderNotFoundError: Unknown id
            PastScheduleError: Activating a one-off reminder whose time has passed
            PermissionDeniedError: Notifications refused on activation
        """
        now = now or datetime.now()

        # Unknown ids never get a lock
        self.get(reminder_id)
        async with self._locks[reminder_id]:
            reminder = self.get(reminder_id)

            if on:
                if reminder.is_active and reminder.notification_id:
                    return reminder
                if not reminder.is_daily and reminder.scheduled_time <= now:
                    raise PastScheduleError(
                        "This reminder is set in the past. Edit it to a future time before activating."
                    )

                handle = await self.triggers.arm(reminder, now)
                if handle is None:
                    raise PermissionDeniedError("Please enable notifications to activate reminders")

                updated = reminder.copy(
                    is_active=True,
                    notification_id=handle.id,
                    scheduled_time=handle.fire_at if reminder.is_daily else reminder.scheduled_time,
                    updated_at=now,
                )
                await self._write(updated, armed=handle.id)
            else:
                await self.triggers.cancel(reminder.notification_id)
                updated = reminder.copy(is_active=False, notification_id=None, updated_at=now)
                await self._write(updated)

            self._reminders[reminder_id] = updated

        logger.info(f"{'Activated' if on else 'Deactivated'} reminder {reminder_id}")
        return updated

    async def edit(self, reminder_id: str, form: ReminderForm, now: Optional[datetime] = None) -> Reminder:
        """Apply form changes to a reminder.

        Edits always commit. A one-off reminder moved into the past is
        deactivated instead of rejected. If re-arming is refused, the title and
        description still commit, the schedule change is dropped and the
        reminder is left inactive.

        Raises:
            ValidationError: Blank title
            ReminderNotFoundError: Unknown id
            PermissionDeniedError: After committing, if re-arming was refused
        """
        now = now or datetime.now()
        title = _clean_title(form.title)

        self.get(reminder_id)
        async with self._locks[reminder_id]:
            reminder = self.get(reminder_id)
            await self.triggers.cancel(reminder.notification_id)

            updated = reminder.copy(
                title=title,
                description=_clean_description(form.description),
                scheduled_time=truncate_to_minute(form.scheduled_time),
                repeat=RepeatMode.parse(form.repeat),
                notification_id=None,
                updated_at=now,
            )

            if updated.is_past_due(now):
                logger.info(f"Reminder {reminder_id} edited to a past time - deactivating")
                updated.is_active = False

            handle = None
            denied = False
            if updated.is_active:
                handle = await self.triggers.arm(updated, now)
                if handle is None:
                    denied = True
                    updated = updated.copy(
                        scheduled_time=reminder.scheduled_time,
                        repeat=reminder.repeat,
                        is_active=False,
                    )
                else:
                    updated.notification_id = handle.id
                    if updated.is_daily:
                        updated.scheduled_time = handle.fire_at

            await self._write(updated, armed=handle.id if handle else None)
            self._reminders[reminder_id] = updated

        if denied:
            raise PermissionDeniedError("Please enable notifications to update reminders", reminder=updated)

        logger.info(f"Edited reminder {reminder_id}")
        return updated

    async def delete(self, reminder_id: str) -> None:
        """Cancel the trigger, then remove the row.

        Raises:
            ReminderNotFoundError: Unknown id
        """
        self.get(reminder_id)
        async with self._locks[reminder_id]:
            reminder = self.get(reminder_id)
            await self.triggers.cancel(reminder.notification_id)
            await self.store.delete_row(reminder_id)
            del self._reminders[reminder_id]

        self._locks.pop(reminder_id, None)
        logger.info(f"Deleted reminder {reminder_id}")

    # ------------------------------------------------------------------
    # Event-driven transitions
    # ------------------------------------------------------------------

    async def on_trigger_fired(
        self,
        reminder_id: str,
        is_daily: Optional[bool] = None,
        now: Optional[datetime] = None,
        handle: Optional[str] = None
    ) -> Optional[Reminder]:
        """Handle a delivered or tapped notification.

        One-off reminders become inactive. Daily reminders stay active and are
        re-armed for tomorrow. The stored repeat mode wins over the payload's
        isDaily flag. Repeated events for the same fire are ignored, as are
        events from a trigger the reminder no longer holds.

        Args:
            reminder_id: Reminder named in the notification payload
            is_daily: Payload's isDaily flag (informational only)
            now: Current time (defaults to now)
            handle: Trigger that produced the event, when the boundary reports it

        Returns:
            The updated reminder, or None if the id is unknown
        """
        now = now or datetime.now()

        async with self._locks[reminder_id]:
            reminder = self._reminders.get(reminder_id)
            if reminder is None:
                logger.warning(f"Trigger fired for unknown reminder {reminder_id}")
            else:
                return await self._apply_fire(reminder, is_daily, now, handle)

        self._locks.pop(reminder_id, None)
        return None

    async def reconcile_on_foreground(self, now: Optional[datetime] = None) -> list[Reminder]:
        """Deactivate one-off reminders whose time passed while nobody handled the fire.

        Daily reminders and future one-offs are left alone.

        Returns:
            Reminders that were deactivated
        """
        now = now or datetime.now()
        deactivated = []

        for reminder_id in list(self._reminders):
            async with self._locks[reminder_id]:
                reminder = self._reminders.get(reminder_id)
                if reminder is None or not reminder.is_past_due(now):
                    continue

                await self.triggers.cancel(reminder.notification_id)
                updated = reminder.copy(is_active=False, notification_id=None, updated_at=now)
                await self.store.update_row(updated)
                self._reminders[reminder_id] = updated
                deactivated.append(updated)

        if deactivated:
            logger.info(f"Reconciled {len(deactivated)} past-due reminders")
        return deactivated

    async def restore_triggers(self, now: Optional[datetime] = None) -> int:
        """Re-arm active reminders after a process start.

        Scheduled triggers do not outlive the process, so every stored handle
        is stale here. Past one-offs are reconciled first; the rest get a fresh
        trigger. A refused permission leaves the reminder inactive.

        Returns:
            Count of reminders re-armed
        """
        now = now or datetime.now()
        await self.reconcile_on_foreground(now)
        restored = 0

        for reminder_id in list(self._reminders):
            async with self._locks[reminder_id]:
                reminder = self._reminders.get(reminder_id)
                if reminder is None or not reminder.is_active:
                    continue

                await self.triggers.cancel(reminder.notification_id)
                handle = await self.triggers.arm(reminder, now)

                if handle is None:
                    updated = reminder.copy(is_active=False, notification_id=None, updated_at=now)
                    await self.store.update_row(updated)
                elif reminder.is_daily and handle.fire_at != reminder.scheduled_time:
                    updated = reminder.copy(notification_id=handle.id, scheduled_time=handle.fire_at, updated_at=now)
                    await self._write(updated, armed=handle.id)
                    restored += 1
                else:
                    updated = reminder.copy(notification_id=handle.id, updated_at=now)
                    try:
                        await self.store.update_notification_id(reminder_id, handle.id, updated_at=now)
                    except PersistenceError:
                        await self.triggers.cancel(handle.id)
                        raise
                    restored += 1

                self._reminders[reminder_id] = updated

        logger.info(f"Restored {restored} reminder triggers")
        return restored

    async def handle_notification_event(self, data: dict) -> None:
        """Listener for the boundary's "received" and "response" events."""
        reminder_id = data.get("reminderId")
        if not reminder_id:
            return
        await self.on_trigger_fired(reminder_id, data.get("isDaily"), handle=data.get("notificationId"))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _apply_fire(
        self,
        reminder: Reminder,
        is_daily: Optional[bool],
        now: datetime,
        handle: Optional[str]
    ) -> Reminder:
        if handle is not None and handle != reminder.notification_id:
            logger.debug(f"Ignoring event from stale trigger {handle} for reminder {reminder.id}")
            return reminder

        if is_daily is not None and is_daily != reminder.is_daily:
            logger.debug(f"Stale isDaily payload for reminder {reminder.id}")

        if not reminder.is_active or reminder.scheduled_time > now:
            return reminder

        if reminder.is_daily:
            updated = await self._roll_daily(reminder, now)
        else:
            await self.triggers.cancel(reminder.notification_id)
            updated = reminder.copy(is_active=False, notification_id=None, updated_at=now)
            await self.store.update_row(updated)
            logger.info(f"Reminder {reminder.id} fired - now inactive")

        self._reminders[reminder.id] = updated
        return updated

    async def _roll_daily(self, reminder: Reminder, now: datetime) -> Reminder:
        handle = await self.triggers.reschedule_daily(reminder, now)
        if handle is None:
            # An active reminder must always have a trigger
            logger.warning(f"Could not re-arm daily reminder {reminder.id} - permission denied, deactivating")
            updated = reminder.copy(is_active=False, notification_id=None, updated_at=now)
            await self.store.update_row(updated)
            return updated

        updated = reminder.copy(notification_id=handle.id, scheduled_time=handle.fire_at, updated_at=now)
        await self._write(updated, armed=handle.id)
        logger.info(f"Rescheduled daily reminder {reminder.id} for {handle.fire_at}")
        return updated

    async def _write(self, reminder: Reminder, new: bool = False, armed: Optional[str] = None) -> None:
        """Persist a reminder; on failure cancel the trigger armed for it."""
        try:
            if new:
                await self.store.create_row(reminder)
            else:
                await self.store.update_row(reminder)
        except PersistenceError:
            if armed:
                await self.triggers.cancel(armed)
                logger.error(f"Rolled back trigger {armed} after failed write of reminder {reminder.id}")
            raise


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Please enter a reminder title")
    return title


def _clean_description(description: Optional[str]) -> Optional[str]:
    description = (description or "").strip()
    return description or None
