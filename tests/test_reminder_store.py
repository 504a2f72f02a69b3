"""Tests for the reminder SQLite store.

Uses pytest fixtures for proper test isolation - each test gets a fresh database.
"""

from datetime import datetime

import pytest

from domains.reminders.errors import PersistenceError
from domains.reminders.models import Reminder, RepeatMode, from_epoch_ms, to_epoch_ms
from domains.reminders.store import ReminderStore
from conftest import NOW


def make_reminder(**overrides) -> Reminder:
    values = dict(
        id="r1",
        title="Take medicine",
        description="Two tablets",
        scheduled_time=datetime(2025, 9, 14, 15, 30),
        is_active=True,
        created_at=datetime(2025, 9, 14, 12, 0, 0, 123000),
        updated_at=datetime(2025, 9, 14, 12, 0, 0, 456000),
        repeat=RepeatMode.DAILY,
        notification_id="handle-1",
    )
    values.update(overrides)
    return Reminder(**values)


@pytest.mark.asyncio
async def test_create_and_read_round_trip(store):
    """Fields read back exactly as written, at millisecond precision."""
    reminder = make_reminder()

    await store.create_row(reminder)
    rows = await store.read_all()

    assert len(rows) == 1, "Should have exactly 1 reminder"
    row = rows[0]
    assert row.scheduled_time == reminder.scheduled_time
    assert row.is_active is True
    assert row.repeat == RepeatMode.DAILY
    assert row.notification_id == "handle-1"
    assert row.created_at == reminder.created_at
    assert row.updated_at == reminder.updated_at
    assert row == reminder


@pytest.mark.asyncio
async def test_raw_row_format(store):
    """Timestamps are epoch ms and flags are 0/1."""
    reminder = make_reminder(is_active=False, notification_id=None, description=None)
    await store.create_row(reminder)

    raw = dict(store._get_connection().execute("SELECT * FROM reminders").fetchone())

    assert raw["scheduledTime"] == to_epoch_ms(reminder.scheduled_time)
    assert raw["isActive"] == 0
    assert raw["notificationId"] is None
    assert raw["description"] is None
    assert raw["repeat"] == "daily"


@pytest.mark.asyncio
async def test_repeat_defaults_to_none(store):
    store._get_connection().execute(
        "INSERT INTO reminders (id, title, scheduledTime, isActive, createdAt, updatedAt) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        ("legacy", "Old row", to_epoch_ms(NOW), 1, to_epoch_ms(NOW), to_epoch_ms(NOW))
    )

    rows = await store.read_all()

    assert rows[0].repeat == RepeatMode.NONE


@pytest.mark.asyncio
async def test_invalid_rows_are_skipped(store):
    store._get_connection().execute(
        "INSERT INTO reminders (id, title, scheduledTime, isActive, createdAt, updatedAt) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        ("blank", "", to_epoch_ms(NOW), 1, to_epoch_ms(NOW), to_epoch_ms(NOW))
    )
    await store.create_row(make_reminder())

    rows = await store.read_all()

    assert [r.id for r in rows] == ["r1"]


@pytest.mark.asyncio
async def test_update_row(store):
    reminder = make_reminder()
    await store.create_row(reminder)

    await store.update_row(reminder.copy(title="Take vitamins", is_active=False, notification_id=None))
    row = (await store.read_all())[0]

    assert row.title == "Take vitamins"
    assert row.is_active is False
    assert row.notification_id is None
    assert row.created_at == reminder.created_at


@pytest.mark.asyncio
async def test_update_missing_row_raises(store):
    with pytest.raises(PersistenceError):
        await store.update_row(make_reminder(id="missing"))


@pytest.mark.asyncio
async def test_duplicate_id_raises(store):
    await store.create_row(make_reminder())

    with pytest.raises(PersistenceError):
        await store.create_row(make_reminder())


@pytest.mark.asyncio
async def test_update_notification_id(store):
    reminder = make_reminder()
    await store.create_row(reminder)

    await store.update_notification_id(reminder.id, "handle-2")
    row = (await store.read_all())[0]

    assert row.notification_id == "handle-2"
    assert row.updated_at > reminder.updated_at


@pytest.mark.asyncio
async def test_update_notification_id_with_timestamp(store):
    reminder = make_reminder()
    await store.create_row(reminder)
    stamp = datetime(2025, 9, 16, 10, 0)

    await store.update_notification_id(reminder.id, "handle-3", updated_at=stamp)
    row = (await store.read_all())[0]

    assert row.notification_id == "handle-3"
    assert row.updated_at == stamp


@pytest.mark.asyncio
async def test_delete_row(store):
    await store.create_row(make_reminder())
    await store.create_row(make_reminder(id="r2"))

    await store.delete_row("r1")

    assert [r.id for r in await store.read_all()] == ["r2"]


@pytest.mark.asyncio
async def test_init_db_is_idempotent(store):
    await store.create_row(make_reminder())

    await store.init_db()

    assert len(await store.read_all()) == 1


@pytest.mark.asyncio
async def test_data_survives_reopen(tmp_path):
    path = str(tmp_path / "reopen.db")
    first = ReminderStore(path)
    await first.init_db()
    await first.create_row(make_reminder())
    first.close()

    second = ReminderStore(path)
    await second.init_db()
    try:
        assert (await second.read_all())[0].id == "r1"
    finally:
        second.close()


@pytest.mark.asyncio
async def test_unopenable_database_raises(tmp_path):
    store = ReminderStore(str(tmp_path))

    with pytest.raises(PersistenceError):
        await store.init_db()


def test_epoch_conversion_keeps_milliseconds():
    dt = datetime(2025, 9, 14, 12, 0, 0, 789000)
    assert from_epoch_ms(to_epoch_ms(dt)) == dt
