"""Reminder API Routes.

CRUD, toggle, search and chat-text creation for reminders. Every route goes
through the ReminderService held on app.state; domain errors are mapped to
HTTP responses by the handlers registered in main.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from domains.reminders import ReminderForm, ReminderService, RepeatMode, TextDraft

router = APIRouter(prefix="/reminders", tags=["Reminders"])


# ============================================================
# Pydantic Models
# ============================================================

class ReminderCreate(BaseModel):
    """Create a reminder from the form."""
    title: str
    scheduled_time: datetime
    description: Optional[str] = None
    repeat: RepeatMode = RepeatMode.NONE


class ReminderUpdate(BaseModel):
    """Edit a reminder. Omitted fields keep their current value."""
    title: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    description: Optional[str] = None
    repeat: Optional[RepeatMode] = None


class ReminderText(BaseModel):
    """Chat input. confirmed=True accepts the parsed draft as-is."""
    text: str
    confirmed: bool = False


class ToggleRequest(BaseModel):
    on: bool


# ============================================================
# Helpers
# ============================================================

def get_service(request: Request) -> ReminderService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(503, "Reminder service not started")
    return service


def _local(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes are converted to naive local wall-clock time."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def _reminder_response(service: ReminderService, reminder) -> dict:
    data = reminder.to_dict()
    data["schedule"] = service.describe(reminder)
    return data


def draft_response(draft: TextDraft) -> dict:
    return {
        "text": draft.text,
        "fields": draft.fields.to_dict(),
        "form": {
            "title": draft.form.title,
            "description": draft.form.description,
            "scheduled_time": draft.form.scheduled_time.isoformat(),
            "repeat": draft.form.repeat.value,
        },
        "needs_review": draft.needs_review,
    }


# ============================================================
# Routes
# ============================================================

@router.get("")
async def list_reminders(
    request: Request,
    status: Optional[str] = Query(default=None, pattern="^(active|inactive)$"),
    q: Optional[str] = Query(default=None, description="Search title and description")
):
    """List reminders, optionally filtered by status and search text."""
    service = get_service(request)

    if q:
        reminders = service.search(q)
        if status:
            wanted = status == "active"
            reminders = [r for r in reminders if r.is_active == wanted]
    elif status == "active":
        reminders = service.list_active()
    elif status == "inactive":
        reminders = service.list_inactive()
    else:
        reminders = service.list_active() + service.list_inactive()

    return {
        "reminders": [_reminder_response(service, r) for r in reminders],
        "count": len(reminders),
    }


@router.get("/{reminder_id}")
async def get_reminder(reminder_id: str, request: Request):
    service = get_service(request)
    return _reminder_response(service, service.get(reminder_id))


@router.post("", status_code=201)
async def create_reminder(body: ReminderCreate, request: Request):
    """Create a reminder from the form and arm its trigger."""
    service = get_service(request)
    reminder = await service.create_from_form(ReminderForm(
        title=body.title,
        description=body.description,
        scheduled_time=_local(body.scheduled_time),
        repeat=body.repeat,
    ))
    return _reminder_response(service, reminder)


@router.post("/parse")
async def parse_reminder_text(body: ReminderText, request: Request):
    """Turn chat text into a pre-filled form without creating anything."""
    service = get_service(request)
    return draft_response(await service.draft_from_text(body.text))


@router.post("/text", status_code=201)
async def create_reminder_from_text(body: ReminderText, request: Request):
    """Create a reminder from chat text.

    Drafts that need review are rejected with 409 unless confirmed.
    """
    service = get_service(request)
    confirm = (lambda draft: draft.form) if body.confirmed else None
    reminder = await service.create_from_text(body.text, confirm=confirm)
    return _reminder_response(service, reminder)


@router.patch("/{reminder_id}")
async def edit_reminder(reminder_id: str, body: ReminderUpdate, request: Request):
    service = get_service(request)
    current = service.get(reminder_id)

    form = ReminderForm(
        title=body.title if body.title is not None else current.title,
        description=body.description if body.description is not None else current.description,
        scheduled_time=_local(body.scheduled_time) or current.scheduled_time,
        repeat=body.repeat or current.repeat,
    )
    reminder = await service.edit(reminder_id, form)
    return _reminder_response(service, reminder)


@router.post("/{reminder_id}/toggle")
async def toggle_reminder(reminder_id: str, body: ToggleRequest, request: Request):
    service = get_service(request)
    reminder = await service.toggle(reminder_id, body.on)
    return _reminder_response(service, reminder)


@router.delete("/{reminder_id}")
async def delete_reminder(reminder_id: str, request: Request):
    service = get_service(request)
    await service.delete(reminder_id)
    return {"status": "deleted", "id": reminder_id}
