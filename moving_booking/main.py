import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from moving_booking.api.bookings import router as bookings_router
from moving_booking.core.config import settings
from moving_booking.wiring.dependencies import get_reminder_task


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("booking_id", "provider", "event_id", "date", "time", "status", "reason", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reminders = get_reminder_task() if settings.REMINDER_SCHEDULER_ENABLED else None
    if reminders is not None:
        reminders.start()
    try:
        yield
    finally:
        if reminders is not None:
            reminders.stop()


app = FastAPI(title="Moving Booking Coordinator", version="1.0.0", lifespan=lifespan)

app.include_router(bookings_router, prefix="/api", tags=["bookings"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
