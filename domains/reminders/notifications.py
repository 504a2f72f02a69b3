"""Notification boundary backed by APScheduler date triggers.

Arming a notification adds a one-shot DateTrigger job; when it runs, the
notification is handed to a presenter (log or webhook) and "received"
listeners are called with the payload set at arm time plus the handle
("notificationId"). The UI reports taps through notify_tapped(), which calls
the "response" listeners with the same data. Delivered notifications stay
tappable until tapped, cancelled or pushed out of the bounded history.
A coarse app-lifecycle "became active" event is relayed the same way.

Jobs live in memory only; the lifecycle re-arms active reminders on start-up.
"""

import inspect
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import httpx
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from logger import logger
from . import config
from .models import NotificationContent

Listener = Callable[[dict], Awaitable[None]]


@dataclass
class ScheduledNotification:
    """A notification armed with the boundary."""
    handle: str
    content: NotificationContent
    fire_at: datetime


@dataclass
class ChannelSetup:
    """One-time notification channel setup state.

    Owned by whoever builds the NotificationCenter, so tests can hand in a
    fresh instance (or call reset()) instead of poking module globals.
    """
    completed: bool = False
    channel: Optional[dict] = None

    def reset(self) -> None:
        self.completed = False
        self.channel = None


class LogPresenter:
    """Present notifications by writing them to the log."""

    async def present(self, notification: ScheduledNotification) -> None:
        content = notification.content
        logger.info(f"[{content.channel_id}] {content.title} - {content.body}")


class WebhookPresenter:
    """Present notifications by POSTing them to a webhook as JSON."""

    def __init__(self, url: str, timeout: float = config.WEBHOOK_TIMEOUT):
        self.url = url
        self.timeout = timeout

    async def present(self, notification: ScheduledNotification) -> None:
        content = notification.content
        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.url,
                json={
                    "title": content.title,
                    "body": content.body,
                    "data": content.data,
                    "channel": content.channel_id,
                    "fire_at": notification.fire_at.isoformat(),
                },
                timeout=self.timeout
            )
            response.raise_for_status()
        logger.debug(f"Delivered notification {notification.handle} to webhook")


def build_presenter():
    """Webhook presenter when NOTIFY_WEBHOOK_URL is set, else log only."""
    from config import NOTIFY_WEBHOOK_URL

    if NOTIFY_WEBHOOK_URL:
        return WebhookPresenter(NOTIFY_WEBHOOK_URL)
    return LogPresenter()


def _default_permission() -> bool:
    from config import NOTIFICATIONS_ENABLED
    return NOTIFICATIONS_ENABLED


class NotificationCenter:
    """Arm, cancel and deliver scheduled notifications."""

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        presenter=None,
        permission_provider: Optional[Callable[[], Any]] = None,
        setup: Optional[ChannelSetup] = None
    ):
        """Initialize the notification center.

        Args:
            scheduler: APScheduler instance (a new AsyncIOScheduler if omitted)
            presenter: Object with async present(notification) (log presenter if omitted)
            permission_provider: Callable (sync or async) answering whether
                notifications are allowed (NOTIFICATIONS_ENABLED if omitted)
            setup: Channel setup state (fresh if omitted)
        """
        self.scheduler = scheduler or AsyncIOScheduler()
        self.presenter = presenter or LogPresenter()
        self.permission_provider = permission_provider or _default_permission
        self.setup = setup or ChannelSetup()

        self._scheduled: dict[str, ScheduledNotification] = {}
        self._delivered: dict[str, ScheduledNotification] = {}
        self._received_listeners: list[Listener] = []
        self._response_listeners: list[Listener] = []
        self._active_listeners: list[Callable[[], Awaitable[None]]] = []

    def ensure_channel(self) -> None:
        """Register the reminders channel and start the scheduler, once."""
        if self.setup.completed:
            return

        self.setup.channel = {
            "id": config.CHANNEL_ID,
            "name": config.CHANNEL_NAME,
            "importance": config.CHANNEL_IMPORTANCE,
        }
        if not self.scheduler.running:
            self.scheduler.start()
        self.setup.completed = True
        logger.info(f"Notification channel '{config.CHANNEL_ID}' ready")

    async def request_permission(self) -> bool:
        """Ask whether notifications may be armed. Provider errors count as denied."""
        try:
            granted = self.permission_provider()
            if inspect.isawaitable(granted):
                granted = await granted
        except Exception as e:
            logger.warning(f"Notification permission request failed: {e}")
            return False
        return bool(granted)

    async def arm(self, content: NotificationContent, fire_at: datetime) -> str:
        """Schedule a one-shot notification.

        Args:
            content: Title, body, payload and channel
            fire_at: Naive local time to deliver at

        Returns:
            Opaque handle for cancellation
        """
        self.ensure_channel()
        if content.channel_id is None:
            content.channel_id = self.setup.channel["id"]

        handle = uuid.uuid4().hex
        self.scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=fire_at),
            args=[handle],
            id=handle,
            name=f"reminder:{content.title[:30]}",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True
        )
        self._scheduled[handle] = ScheduledNotification(handle=handle, content=content, fire_at=fire_at)

        logger.debug(f"Armed notification {handle} for {fire_at}")
        return handle

    async def cancel(self, handle: str) -> None:
        """Cancel a scheduled notification. Unknown or already-fired handles are ignored."""
        self._scheduled.pop(handle, None)
        try:
            self.scheduler.remove_job(handle)
            logger.debug(f"Cancelled notification {handle}")
        except JobLookupError:
            pass

    async def cancel_all(self) -> None:
        for handle in list(self._scheduled):
            await self.cancel(handle)
        self._delivered.clear()

    def get_scheduled(self) -> list[ScheduledNotification]:
        return sorted(self._scheduled.values(), key=lambda n: n.fire_at)

    def add_received_listener(self, listener: Listener) -> None:
        self._received_listeners.append(listener)

    def add_response_listener(self, listener: Listener) -> None:
        self._response_listeners.append(listener)

    def add_active_listener(self, listener: Callable[[], Awaitable[None]]) -> None:
        self._active_listeners.append(listener)

    async def notify_tapped(self, handle: str) -> bool:
        """Report that the user tapped a delivered notification.

        Returns:
            True if the handle was known and listeners were called
        """
        notification = self._delivered.pop(handle, None) or self._scheduled.get(handle)
        if notification is None:
            logger.warning(f"Tap on unknown notification {handle}")
            return False

        await self._dispatch(self._response_listeners, notification)
        return True

    async def notify_became_active(self) -> None:
        """Relay the app-lifecycle "became active" event."""
        for listener in self._active_listeners:
            await listener()

    async def _fire(self, handle: str) -> None:
        """Scheduler job: present the notification, then tell listeners."""
        notification = self._scheduled.pop(handle, None)
        if notification is None:
            return

        try:
            await self.presenter.present(notification)
        except Exception as e:
            logger.error(f"Failed to present notification {handle}: {e}")

        self._delivered[handle] = notification
        while len(self._delivered) > config.DELIVERED_HISTORY:
            self._delivered.pop(next(iter(self._delivered)))

        await self._dispatch(self._received_listeners, notification)

    async def _dispatch(self, listeners: list[Listener], notification: ScheduledNotification) -> None:
        data = {**notification.content.data, "notificationId": notification.handle}
        for listener in listeners:
            try:
                await listener(dict(data))
            except Exception as e:
                logger.error(f"Notification listener failed for {data}: {e}")
