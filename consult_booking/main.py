import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from consult_booking.api.v1.booking_sessions import router as booking_sessions_router
from consult_booking.application.exceptions import BookingApiError
from consult_booking.core.config import settings
from consult_booking.wiring.dependencies import close_booking_api, get_booking_api, get_session_store


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("session_id", "resource", "cache_key", "step", "error_kind", "phase", "service", "reference"):
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
    yield
    await close_booking_api()


app = FastAPI(title="Consultation Booking", version="1.0.0", lifespan=lifespan)

app.include_router(booking_sessions_router, prefix="/api/v1", tags=["booking"])


@app.get("/health")
async def health() -> dict[str, object]:
    try:
        upstream = await get_booking_api().health_check()
    except (BookingApiError, httpx.HTTPError) as e:
        logging.getLogger(__name__).warning("Booking API health check failed", extra={"error": str(e)})
        upstream = False
    return {
        "status": "ok",
        "booking_api": "ok" if upstream else "unavailable",
        "active_sessions": get_session_store().count(),
    }
