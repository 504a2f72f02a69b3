"""Pytest configuration and fixtures."""

import os
import sys
import tempfile
from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep logs and the default database out of the working tree; never call Claude
os.environ.setdefault("REMINDERS_DATA_DIR", tempfile.mkdtemp(prefix="reminders_test_"))
os.environ["REMINDERS_CLAUDE_KEY"] = ""

from domains.reminders.lifecycle import ReminderLifecycle  # noqa: E402
from domains.reminders.notifications import ChannelSetup, NotificationCenter  # noqa: E402
from domains.reminders.resolver import ScheduleResolver  # noqa: E402
from domains.reminders.service import ReminderService  # noqa: E402
from domains.reminders.store import ReminderStore  # noqa: E402
from domains.reminders.triggers import TriggerScheduler  # noqa: E402

# Reference "now" used throughout the suite
NOW = datetime(2025, 9, 14, 12, 0)


class FakeNotifications:
    """In-memory notification boundary that records arm/cancel calls."""

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.armed = {}
        self.cancelled = []
        self.arm_calls = 0
        self.permission_requests = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.granted

    async def arm(self, content, fire_at):
        self.arm_calls += 1
        handle = f"handle-{self.arm_calls}"
        self.armed[handle] = (content, fire_at)
        return handle

    async def cancel(self, handle):
        self.cancelled.append(handle)
        self.armed.pop(handle, None)


class FakeGenerator:
    """Primary text parser stand-in returning a canned response (or raising)."""

    def __init__(self, response: str = "", error: Exception = None):
        self.response = response
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


def mock_scheduler():
    """APScheduler stand-in; jobs are recorded, never run."""
    scheduler = Mock()
    scheduler.running = False
    return scheduler


def make_center(granted: bool = True) -> NotificationCenter:
    return NotificationCenter(
        scheduler=mock_scheduler(),
        permission_provider=lambda: granted,
        setup=ChannelSetup()
    )


def make_service(db_path: str, granted: bool = True, resolver: ScheduleResolver = None) -> ReminderService:
    return ReminderService(
        store=ReminderStore(db_path),
        notifications=make_center(granted),
        resolver=resolver or ScheduleResolver(),
    )


@pytest_asyncio.fixture
async def store(tmp_path):
    """Fresh SQLite store per test."""
    reminder_store = ReminderStore(str(tmp_path / "reminders.db"))
    await reminder_store.init_db()
    yield reminder_store
    reminder_store.close()


@pytest.fixture
def notifications():
    return FakeNotifications()


@pytest.fixture
def triggers(notifications):
    return TriggerScheduler(notifications)


@pytest.fixture
def lifecycle(store, triggers):
    return ReminderLifecycle(store, triggers)


@pytest.fixture
def center():
    return make_center()


@pytest_asyncio.fixture
async def service(tmp_path):
    reminder_service = make_service(str(tmp_path / "service.db"))
    await reminder_service.start(NOW)
    yield reminder_service
    await reminder_service.stop()


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client."""
    with patch('httpx.AsyncClient') as mock:
        client = AsyncMock()
        mock.return_value.__aenter__.return_value = client
        yield client
