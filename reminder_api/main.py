"""Reminder API - local HTTP surface for the reminders UI.

Exposes the reminder operations and relays notification taps and
app-foreground events back into the reminder lifecycle.
Run with: uvicorn reminder_api.main:app --port 8200
"""

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from logger import logger
from domains.reminders import (
    NeedsConfirmationError,
    PermissionDeniedError,
    PersistenceError,
    ReminderNotFoundError,
    ValidationError,
    build_service,
)
from .reminder_routes import draft_response, get_service, router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reminder service on startup, stop it on shutdown."""
    service = getattr(app.state, "service", None) or build_service()
    app.state.service = service

    await service.start()
    logger.info("Reminder API started")

    yield

    await service.stop()
    app.state.service = None
    logger.info("Reminder API stopped")


app = FastAPI(
    title="Reminder API",
    description="Personal reminders with natural-language scheduling",
    version="1.0.0",
    lifespan=lifespan
)
app.include_router(router)


# ============================================================
# Error mapping
# ============================================================

@app.exception_handler(ReminderNotFoundError)
async def not_found_handler(request: Request, exc: ReminderNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(NeedsConfirmationError)
async def needs_confirmation_handler(request: Request, exc: NeedsConfirmationError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "draft": draft_response(exc.draft)}
    )


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(PermissionDeniedError)
async def permission_handler(request: Request, exc: PermissionDeniedError):
    content = {"detail": str(exc)}
    if exc.reminder is not None:
        content["reminder"] = exc.reminder.to_dict()
    return JSONResponse(status_code=403, content=content)


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Could not save reminder. Please try again."})


# ============================================================
# Health Check
# ============================================================

@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    service = getattr(request.app.state, "service", None)
    return {
        "status": "ok" if service is not None else "starting",
        "scheduled": len(service.notifications.get_scheduled()) if service else 0,
        "timestamp": datetime.now().isoformat()
    }


# ============================================================
# Notification and lifecycle events
# ============================================================

@app.post("/notifications/{handle}/tap")
async def notification_tapped(handle: str, request: Request):
    """The user tapped a delivered notification."""
    service = get_service(request)
    if not await service.notifications.notify_tapped(handle):
        raise HTTPException(404, f"Notification {handle} not found")
    return {"status": "ok", "handle": handle}


@app.post("/lifecycle/active")
async def app_became_active(request: Request):
    """The UI came to the foreground; reconcile reminders that fired unseen."""
    service = get_service(request)
    await service.notifications.notify_became_active()
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    from config import API_HOST, API_PORT

    uvicorn.run(app, host=API_HOST, port=API_PORT)
