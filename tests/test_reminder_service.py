"""Tests for the reminder service operations."""

from datetime import datetime, timedelta

import pytest

from domains.reminders.errors import NeedsConfirmationError, ReminderNotFoundError
from domains.reminders.models import ReminderForm, RepeatMode
from domains.reminders.resolver import ClaudeScheduleParser, ScheduleResolver
from domains.reminders.service import ReminderService
from conftest import NOW, FakeGenerator, make_service


def form(title, at, repeat=RepeatMode.NONE, description=None) -> ReminderForm:
    return ReminderForm(title=title, scheduled_time=at, description=description, repeat=repeat)


class TestCreateFromText:

    @pytest.mark.asyncio
    async def test_draft_from_text(self, service):
        draft = await service.draft_from_text("Call doctor at 3 PM tomorrow", NOW)

        assert draft.fields.used_fallback is True
        assert draft.form.title == "Call doctor"
        assert draft.form.scheduled_time == datetime(2025, 9, 15, 15, 0)
        assert draft.needs_review is True

    @pytest.mark.asyncio
    async def test_draft_with_oversized_offset(self, service):
        draft = await service.draft_from_text("Backup in 999999999 hours", NOW)

        assert draft.fields.is_relative_time is False
        assert draft.form.scheduled_time == datetime(2025, 9, 14, 13, 0)

    @pytest.mark.asyncio
    async def test_fallback_draft_needs_confirmation(self, service):
        with pytest.raises(NeedsConfirmationError) as exc_info:
            await service.create_from_text("Call doctor at 3 PM tomorrow", now=NOW)

        assert exc_info.value.draft.form.title == "Call doctor"
        assert service.list_active() == []

    @pytest.mark.asyncio
    async def test_fallback_daily_draft_is_trusted(self, service):
        reminder = await service.create_from_text("Exercise every day at 7 AM", now=NOW)

        assert reminder.repeat == RepeatMode.DAILY
        assert reminder.scheduled_time == datetime(2025, 9, 15, 7, 0)

    @pytest.mark.asyncio
    async def test_confirm_callback_can_edit_form(self, service):
        def confirm(draft):
            draft.form.title = "Call Dr. Patel"
            return draft.form

        reminder = await service.create_from_text("Call doctor at 3 PM tomorrow", confirm=confirm, now=NOW)

        assert reminder.title == "Call Dr. Patel"
        assert reminder.is_active is True

    @pytest.mark.asyncio
    async def test_async_confirm_callback(self, service):
        async def confirm(draft):
            return draft.form

        reminder = await service.create_from_text("Stretch in 30 minutes", confirm=confirm, now=NOW)

        assert reminder.scheduled_time == datetime(2025, 9, 14, 12, 30)

    @pytest.mark.asyncio
    async def test_declined_confirmation(self, service):
        result = await service.create_from_text("Call doctor tomorrow", confirm=lambda draft: None, now=NOW)

        assert result is None
        assert service.list_active() == []

    @pytest.mark.asyncio
    async def test_primary_parser_result_needs_no_confirmation(self, tmp_path):
        reply = (
            '{"title": "Call mom", "description": null, "date": "tomorrow", "time": "14:00", '
            '"isRelativeTime": false, "relativeMinutes": null, "repeat": "none", "usedFallback": false}'
        )
        resolver = ScheduleResolver(primary=ClaudeScheduleParser(FakeGenerator(reply)))
        service = make_service(str(tmp_path / "primary.db"), resolver=resolver)
        await service.start(NOW)

        try:
            reminder = await service.create_from_text("call mom tmrw 2pm", now=NOW)
            assert reminder.title == "Call mom"
            assert reminder.scheduled_time == datetime(2025, 9, 15, 14, 0)
        finally:
            await service.stop()


class TestQueries:

    @pytest.mark.asyncio
    async def test_lists_split_and_sorted(self, service):
        soon = await service.create_from_form(form("Soon", NOW + timedelta(hours=1)), NOW)
        later = await service.create_from_form(form("Later", NOW + timedelta(days=2)), NOW)
        daily = await service.create_from_form(form("Walk", datetime(2025, 9, 14, 7, 0), RepeatMode.DAILY), NOW)
        off = await service.create_from_form(form("Off", NOW + timedelta(days=1)), NOW)
        await service.toggle(off.id, False, NOW)

        assert [r.id for r in service.list_active()] == [daily.id, later.id, soon.id]
        assert [r.id for r in service.list_inactive()] == [off.id]

    @pytest.mark.asyncio
    async def test_search_title_and_description(self, service):
        pills = await service.create_from_form(
            form("Take medicine", NOW + timedelta(hours=1), description="Blue PILLS"), NOW
        )
        call = await service.create_from_form(form("Call mom", NOW + timedelta(hours=2)), NOW)

        assert [r.id for r in service.search("pills")] == [pills.id]
        assert [r.id for r in service.search("MOM")] == [call.id]
        assert service.search("dentist") == []
        assert len(service.search("  ")) == 2

    @pytest.mark.asyncio
    async def test_get_unknown(self, service):
        with pytest.raises(ReminderNotFoundError):
            service.get("missing")

    @pytest.mark.asyncio
    async def test_describe(self, service):
        reminder = await service.create_from_form(
            form("Walk", datetime(2025, 9, 14, 7, 0), RepeatMode.DAILY), NOW
        )
        assert ReminderService.describe(reminder) == "Daily at 7:00 am"


class TestNotificationWiring:

    @pytest.mark.asyncio
    async def test_fired_notification_deactivates_one_off(self, service):
        reminder = await service.create_from_form(form("Tea", NOW + timedelta(minutes=5)), NOW)

        await service.notifications._fire(reminder.notification_id)

        assert service.get(reminder.id).is_active is False
        assert service.get(reminder.id).notification_id is None

    @pytest.mark.asyncio
    async def test_tap_deactivates_one_off(self, service):
        reminder = await service.create_from_form(form("Tea", NOW + timedelta(minutes=5)), NOW)

        assert await service.notifications.notify_tapped(reminder.notification_id) is True

        assert service.get(reminder.id).is_active is False

    @pytest.mark.asyncio
    async def test_late_tap_does_not_touch_rearmed_reminder(self, service):
        reminder = await service.create_from_form(form("Tea", NOW + timedelta(minutes=5)), NOW)
        first = reminder.notification_id
        await service.notifications._fire(first)

        await service.edit(reminder.id, form("Tea", NOW + timedelta(hours=3)), NOW)
        rearmed = await service.toggle(reminder.id, True, NOW)

        assert await service.notifications.notify_tapped(first) is True

        current = service.get(reminder.id)
        assert current.is_active is True
        assert current.notification_id == rearmed.notification_id
        assert [n.handle for n in service.notifications.get_scheduled()] == [rearmed.notification_id]

    @pytest.mark.asyncio
    async def test_became_active_reconciles(self, service):
        reminder = await service.create_from_form(form("Tea", NOW + timedelta(minutes=5)), NOW)

        changed = await service.became_active(NOW + timedelta(hours=1))

        assert [r.id for r in changed] == [reminder.id]
        assert service.list_inactive()[0].id == reminder.id


class TestStartup:

    @pytest.mark.asyncio
    async def test_restart_restores_triggers(self, tmp_path):
        path = str(tmp_path / "restart.db")
        first = make_service(path)
        await first.start(NOW)
        reminder = await first.create_from_form(form("Tea", datetime(2025, 9, 20, 9, 0)), NOW)
        await first.stop()

        second = make_service(path)
        await second.start(NOW + timedelta(days=1))
        try:
            restored = second.get(reminder.id)
            assert restored.is_active is True
            assert restored.notification_id != reminder.notification_id
            assert [n.handle for n in second.notifications.get_scheduled()] == [restored.notification_id]
        finally:
            await second.stop()
