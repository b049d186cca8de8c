from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from consult_booking.application.dto.booking_payloads import is_iso_date
from consult_booking.application.exceptions import ApiValidationError, BookingApiError
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.resource_cache import ResourceCache
from consult_booking.application.state_store import BookingStateStore
from consult_booking.application.utils.error_classifier import classify_error
from consult_booking.domain.entities.api_error import ClassifiedError
from consult_booking.domain.entities.booking_state import ResourceKind

Loader = Callable[[], Awaitable[list[Any]]]

_STATE_FIELDS: dict[ResourceKind, str] = {
    ResourceKind.SERVICES: "available_services",
    ResourceKind.DATES: "available_dates",
    ResourceKind.TIME_SLOTS: "available_time_slots",
}


def services_key() -> str:
    return "services"


def dates_key(service_id: str) -> str:
    return f"dates:{service_id}"


def time_slots_key(service_id: str, date: str) -> str:
    return f"timeSlots:{service_id}:{date}"


@dataclass(frozen=True)
class FetchResult:
    value: tuple[Any, ...] = ()
    error: ClassifiedError | None = None
    from_cache: bool = False
    applied: bool = True  # False when a newer request of the same kind superseded this one

    @property
    def ok(self) -> bool:
        return self.error is None


class ResourceOrchestrator:
    def __init__(
        self,
        api: BookingApiPort,
        store: BookingStateStore,
        cache: ResourceCache | None = None,
        timeout_seconds: float | None = 15.0,
    ) -> None:
        self._api = api
        self._store = store
        self._cache = cache or ResourceCache()
        self._timeout_seconds = timeout_seconds
        self._in_flight: dict[ResourceKind, int] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    async def fetch_services(self, force_refresh: bool = False) -> FetchResult:
        return await self._fetch(ResourceKind.SERVICES, services_key(), self._api.list_services, force_refresh)

    async def fetch_dates(self, service_id: str, force_refresh: bool = False) -> FetchResult:
        if not service_id:
            return self._rejected(ResourceKind.DATES, "A service must be selected before loading dates.")
        return await self._fetch(
            ResourceKind.DATES,
            dates_key(service_id),
            lambda: self._api.list_available_dates(service_id),
            force_refresh,
        )

    async def fetch_time_slots(self, service_id: str, date: str, force_refresh: bool = False) -> FetchResult:
        if not service_id or not is_iso_date(date):
            return self._rejected(ResourceKind.TIME_SLOTS, "A service and a YYYY-MM-DD date are required.")
        return await self._fetch(
            ResourceKind.TIME_SLOTS,
            time_slots_key(service_id, date),
            lambda: self._api.list_time_slots(service_id, date),
            force_refresh,
        )

    def invalidate_service(self, service_id: str) -> list[str]:
        """Drop cached availability for a service and supersede its in-flight reads."""
        dropped: list[str] = []
        if dates_key(service_id) in self._cache.keys():
            self._cache.invalidate(dates_key(service_id))
            dropped.append(dates_key(service_id))
        dropped.extend(self._cache.invalidate_prefix(f"timeSlots:{service_id}:"))
        self._cache.issue(ResourceKind.DATES.value)
        self._cache.issue(ResourceKind.TIME_SLOTS.value)
        self._logger.info("Availability cache invalidated", extra={"service": service_id, "cache_key": dropped})
        return dropped

    def supersede(self, kind: ResourceKind) -> None:
        """Responses still in flight for `kind` will not be applied to state."""
        self._cache.issue(kind.value)
        self._logger.debug("In-flight responses superseded", extra={"resource": kind.value})

    def invalidate_time_slots(self, service_id: str, date: str) -> None:
        self._cache.invalidate(time_slots_key(service_id, date))
        self._logger.info("Time slot cache invalidated", extra={"cache_key": time_slots_key(service_id, date)})

    def clear(self) -> None:
        self._cache.clear()

    async def _fetch(self, kind: ResourceKind, key: str, loader: Loader, force_refresh: bool) -> FetchResult:
        entry = self._cache.get(key)

        if entry is not None and entry.has_value and not force_refresh:
            generation = self._cache.issue(kind.value)
            self._apply(kind, generation, entry.value)
            return FetchResult(value=entry.value, from_cache=True)

        if entry is not None and entry.in_flight:
            self._logger.debug("Joining in-flight request", extra={"cache_key": key})
            return await asyncio.shield(entry.pending)

        generation = self._cache.issue(kind.value)
        task = asyncio.create_task(self._run(kind, key, generation, loader))
        self._cache.set_pending(key, task)
        return await asyncio.shield(task)

    async def _run(self, kind: ResourceKind, key: str, generation: int, loader: Loader) -> FetchResult:
        epoch = self._cache.epoch
        self._begin(kind)
        self._store.set_error(kind, None)
        try:
            if self._timeout_seconds is None:
                raw = await loader()
            else:
                raw = await asyncio.wait_for(loader(), timeout=self._timeout_seconds)
        except (BookingApiError, httpx.HTTPError, asyncio.TimeoutError) as e:
            error = classify_error(e, resource=kind.value)
            applied = self._cache.is_latest(kind.value, generation)
            if applied:
                self._store.set_error(kind, error)
            self._logger.warning(
                "Resource fetch failed",
                extra={"resource": kind.value, "cache_key": key, "error_kind": error.kind.value, "error": str(e)},
            )
            return FetchResult(error=error, applied=applied)
        finally:
            owned = self._cache.clear_pending(key, asyncio.current_task())
            self._end(kind)

        value = tuple(raw)
        if owned and self._cache.epoch == epoch:
            self._cache.set(key, value)
        applied = self._apply(kind, generation, value)
        self._logger.info(
            "Resource fetched",
            extra={"resource": kind.value, "cache_key": key, "count": len(value), "applied": applied},
        )
        return FetchResult(value=value, applied=applied)

    def _apply(self, kind: ResourceKind, generation: int, value: tuple[Any, ...]) -> bool:
        if not self._cache.is_latest(kind.value, generation):
            self._logger.debug("Discarding superseded response", extra={"resource": kind.value})
            return False
        self._store.update(**{_STATE_FIELDS[kind]: value})
        return True

    def _begin(self, kind: ResourceKind) -> None:
        self._in_flight[kind] = self._in_flight.get(kind, 0) + 1
        self._store.set_loading(kind, True)

    def _end(self, kind: ResourceKind) -> None:
        remaining = max(self._in_flight.get(kind, 1) - 1, 0)
        self._in_flight[kind] = remaining
        self._store.set_loading(kind, remaining > 0)

    def _rejected(self, kind: ResourceKind, message: str) -> FetchResult:
        error = classify_error(ApiValidationError(message), resource=kind.value)
        return FetchResult(error=error, applied=False)
