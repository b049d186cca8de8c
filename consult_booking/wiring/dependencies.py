from functools import lru_cache
import logging

from consult_booking.core.config import settings
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.ports.session_store import SessionStorePort
from consult_booking.application.use_cases.booking_flow import BookingFlow
from consult_booking.infrastructure.booking_api.http_booking_api import HttpBookingApi
from consult_booking.infrastructure.booking_api.mock_booking_api import MockBookingApi
from consult_booking.infrastructure.store.memory_session_store import MemorySessionStore


@lru_cache
def get_booking_api() -> BookingApiPort:
    logger = logging.getLogger(__name__)
    logger.info("BOOKING_API_BASE_URL present=%s ENV=%s", bool(settings.BOOKING_API_BASE_URL), settings.ENV)

    if not settings.BOOKING_API_BASE_URL:
        if settings.ENV.lower() in {"dev", "local", "test"}:
            logger.info("Using MockBookingApi (base URL missing, ENV=%s)", settings.ENV)
            return MockBookingApi()
        raise ValueError("BOOKING_API_BASE_URL is required outside dev/local environments.")

    logger.info("Using HttpBookingApi")
    return HttpBookingApi(
        base_url=settings.BOOKING_API_BASE_URL,
        api_token=settings.BOOKING_API_TOKEN,
        timeout_seconds=settings.BOOKING_API_TIMEOUT_SECONDS,
    )


def create_booking_flow(api: BookingApiPort | None = None) -> BookingFlow:
    return BookingFlow(
        api=api or get_booking_api(),
        fetch_timeout_seconds=settings.RESOURCE_FETCH_TIMEOUT_SECONDS,
        submission_timeout_seconds=settings.SUBMISSION_TIMEOUT_SECONDS,
    )


@lru_cache
def get_session_store() -> SessionStorePort:
    return MemorySessionStore(
        flow_factory=create_booking_flow,
        max_sessions=settings.MAX_ACTIVE_SESSIONS,
    )


async def close_booking_api() -> None:
    if get_booking_api.cache_info().currsize == 0:
        return
    api = get_booking_api()
    if isinstance(api, HttpBookingApi):
        await api.aclose()
    get_booking_api.cache_clear()
