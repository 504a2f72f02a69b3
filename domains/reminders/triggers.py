"""Decide when a reminder's trigger fires and arm it with the notification boundary.

Repeat behaviour is dispatched through one policy object per RepeatMode:
- OneShotPolicy: fire at scheduled_time; refuses times that have passed
- DailyPolicy: fire at the next occurrence of scheduled_time's hour:minute

Daily reminders are armed as one-shot triggers and re-armed after each fire
(reschedule_daily), so rollover logic stays in one place.
"""

from datetime import datetime, timedelta
from typing import Optional

from logger import logger
from . import config
from .errors import ScheduleInPastError
from .models import NotificationContent, Reminder, RepeatMode, TriggerHandle, truncate_to_minute


class OneShotPolicy:
    repeat = RepeatMode.NONE

    def next_fire(self, scheduled_time: datetime, now: datetime) -> datetime:
        fire_at = truncate_to_minute(scheduled_time)
        if fire_at <= now:
            raise ScheduleInPastError(f"Cannot schedule a one-off reminder in the past ({fire_at})")
        return fire_at

    def after_fire(self, scheduled_time: datetime, now: datetime) -> Optional[datetime]:
        """One-off reminders do not roll over."""
        return None


class DailyPolicy:
    repeat = RepeatMode.DAILY

    def next_fire(self, scheduled_time: datetime, now: datetime) -> datetime:
        """Today at hour:minute if still ahead, else tomorrow. A past time of day is fine."""
        fire_at = now.replace(
            hour=scheduled_time.hour, minute=scheduled_time.minute, second=0, microsecond=0
        )
        if fire_at <= now:
            fire_at += timedelta(days=1)
        return fire_at

    def after_fire(self, scheduled_time: datetime, now: datetime) -> datetime:
        """Always exactly tomorrow at the same hour:minute, however late the fire was."""
        tomorrow = now + timedelta(days=1)
        return tomorrow.replace(
            hour=scheduled_time.hour, minute=scheduled_time.minute, second=0, microsecond=0
        )


POLICIES = {
    RepeatMode.NONE: OneShotPolicy(),
    RepeatMode.DAILY: DailyPolicy(),
}


def policy_for(repeat: RepeatMode):
    return POLICIES[RepeatMode.parse(repeat)]


def build_content(reminder: Reminder) -> NotificationContent:
    """Notification title/body plus the payload used to correlate fire events."""
    return NotificationContent(
        title=f"{config.TITLE_PREFIX}{reminder.title}",
        body=reminder.description or config.DEFAULT_BODY,
        data={"reminderId": reminder.id, "isDaily": reminder.is_daily},
        channel_id=config.CHANNEL_ID,
    )


class TriggerScheduler:
    """Arms, cancels and re-arms reminder triggers."""

    def __init__(self, notifications):
        """
        Args:
            notifications: Notification boundary (NotificationCenter or compatible)
        """
        self.notifications = notifications

    async def arm(self, reminder: Reminder, now: Optional[datetime] = None) -> Optional[TriggerHandle]:
        """Arm the trigger for a reminder's next fire.

        Args:
            reminder: Reminder to arm
            now: Current time (defaults to now)

        Returns:
            TriggerHandle, or None if notification permission was denied

        Raises:
            ScheduleInPastError: One-off reminder whose time has passed
                (the boundary is not touched)
        """
        now = now or datetime.now()
        fire_at = policy_for(reminder.repeat).next_fire(reminder.scheduled_time, now)
        return await self._arm_at(reminder, fire_at)

    async def cancel(self, handle_id: Optional[str]) -> None:
        """Cancel an armed trigger. Unknown, fired or missing handles are a no-op."""
        if not handle_id:
            return
        await self.notifications.cancel(handle_id)

    async def reschedule_daily(self, reminder: Reminder, now: Optional[datetime] = None) -> Optional[TriggerHandle]:
        """Cancel the current trigger and arm tomorrow's occurrence.

        Args:
            reminder: A daily reminder that just fired
            now: Current time (defaults to now)

        Returns:
            TriggerHandle for tomorrow, or None if permission was denied
        """
        now = now or datetime.now()
        await self.cancel(reminder.notification_id)

        fire_at = policy_for(RepeatMode.DAILY).after_fire(reminder.scheduled_time, now)
        return await self._arm_at(reminder, fire_at)

    async def _arm_at(self, reminder: Reminder, fire_at: datetime) -> Optional[TriggerHandle]:
        if not await self.notifications.request_permission():
            logger.warning(f"Notification permission denied - reminder {reminder.id} not armed")
            return None

        handle_id = await self.notifications.arm(build_content(reminder), fire_at)
        logger.info(f"Armed trigger {handle_id} for reminder {reminder.id} at {fire_at}")
        return TriggerHandle(id=handle_id, fire_at=fire_at)
