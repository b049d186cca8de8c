from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict, deque
from datetime import date, datetime, timedelta
from typing import Any

from consult_booking.application.exceptions import ApiValidationError, BookingApiError, ConflictError
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot

DEFAULT_SERVICES: tuple[Service, ...] = (
    Service(
        id="fallback-consultation",
        name="Initial Consultation",
        price=0.0,
        duration_minutes=60,
        category="consultation",
        description="Comprehensive assessment of your recovery case",
    ),
    Service(
        id="fallback-crypto",
        name="Cryptocurrency Recovery",
        price=750.0,
        duration_minutes=75,
        category="recovery",
        description="Specialized recovery for lost or stolen cryptocurrency",
    ),
    Service(
        id="fallback-fraud",
        name="Investment Fraud Recovery",
        price=500.0,
        duration_minutes=90,
        category="recovery",
        description="Comprehensive recovery service for investment fraud cases",
    ),
    Service(
        id="fallback-investigation",
        name="Financial Investigation",
        price=600.0,
        duration_minutes=120,
        category="investigation",
        description="Comprehensive financial investigation services",
    ),
)


class MockBookingApi(BookingApiPort):
    """In-memory booking API for local development and tests."""

    def __init__(
        self,
        services: tuple[Service, ...] | list[Service] = DEFAULT_SERVICES,
        start_date: date | None = None,
        days_ahead: int = 14,
        start_hour: int = 9,
        end_hour: int = 17,
        latency_seconds: float = 0.0,
    ) -> None:
        self._services = list(services)
        self._start_date = start_date or date.today() + timedelta(days=1)
        self._days_ahead = days_ahead
        self._start_hour = start_hour
        self._end_hour = end_hour
        self._latency_seconds = latency_seconds
        self._clients: dict[str, dict[str, Any]] = {}
        self._bookings: dict[str, dict[str, Any]] = {}
        self._taken: set[tuple[str, str, str]] = set()
        self._failures: dict[str, deque[BookingApiError]] = defaultdict(deque)
        self.calls: Counter[str] = Counter()
        self._logger = logging.getLogger(__name__)

    def fail_next(self, operation: str, error: BookingApiError, times: int = 1) -> None:
        """Queue `error` for the next `times` calls of `operation` (e.g. "create_booking")."""
        for _ in range(times):
            self._failures[operation].append(error)

    def set_services(self, services: list[Service]) -> None:
        self._services = list(services)

    def reserve(self, service_id: str, day: str, slot_id: str) -> None:
        self._taken.add((service_id, day, slot_id))

    @property
    def bookings(self) -> dict[str, dict[str, Any]]:
        return dict(self._bookings)

    @property
    def clients(self) -> dict[str, dict[str, Any]]:
        return dict(self._clients)

    async def list_services(self) -> list[Service]:
        await self._enter("list_services")
        return list(self._services)

    async def list_available_dates(self, service_id: str) -> list[AvailableDate]:
        await self._enter("list_available_dates")
        self._require_service(service_id)
        dates: list[AvailableDate] = []
        for offset in range(self._days_ahead):
            day = self._start_date + timedelta(days=offset)
            slots = self._slots_for(service_id, day.isoformat())
            open_slots = sum(1 for slot in slots if slot.available)
            dates.append(
                AvailableDate(
                    date=day.isoformat(),
                    available=day.weekday() < 5 and open_slots > 0,
                    slot_count=open_slots if day.weekday() < 5 else 0,
                )
            )
        return dates

    async def list_time_slots(self, service_id: str, date: str) -> list[TimeSlot]:
        await self._enter("list_time_slots")
        self._require_service(service_id)
        if datetime.fromisoformat(date).weekday() >= 5:
            return []
        return self._slots_for(service_id, date)

    async def create_client(self, payload: dict[str, Any]) -> str:
        await self._enter("create_client")
        if not payload.get("email"):
            raise ApiValidationError("Client email is required", status_code=422, details={"email": "required"})
        client_id = f"mock_client_{len(self._clients) + 1}"
        self._clients[client_id] = dict(payload)
        self._logger.info("Mock client created", extra={"client_id": client_id})
        return client_id

    async def create_booking(self, payload: dict[str, Any]) -> str:
        await self._enter("create_booking")
        if payload.get("clientId") not in self._clients:
            raise ApiValidationError("Unknown client", status_code=422, details={"clientId": "unknown"})
        slot_key = (payload["serviceId"], payload["date"], payload["timeSlot"]["id"])
        if slot_key in self._taken:
            raise ConflictError("Time slot already booked", status_code=409)
        self._taken.add(slot_key)
        reference = f"mock_booking_{len(self._bookings) + 1}"
        self._bookings[reference] = dict(payload)
        self._logger.info(
            "Mock booking created",
            extra={"reference": reference, "service": payload["serviceId"], "date": payload["date"]},
        )
        return reference

    async def health_check(self) -> bool:
        await self._enter("health_check")
        return True

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)
        if self._failures[operation]:
            raise self._failures[operation].popleft()

    def _require_service(self, service_id: str) -> Service:
        for service in self._services:
            if service.id == service_id:
                return service
        raise ApiValidationError(f"Unknown service {service_id}", status_code=404)

    def _slots_for(self, service_id: str, day: str) -> list[TimeSlot]:
        service = self._require_service(service_id)
        slots: list[TimeSlot] = []
        current = datetime.combine(date.fromisoformat(day), datetime.min.time().replace(hour=self._start_hour))
        end_time = datetime.combine(date.fromisoformat(day), datetime.min.time().replace(hour=self._end_hour))
        duration = timedelta(minutes=service.duration_minutes)

        while current + duration <= end_time:
            slot_end = current + duration
            slot_id = f"{day}T{current:%H:%M}"
            slots.append(
                TimeSlot(
                    id=slot_id,
                    start_time=f"{current:%H:%M}",
                    end_time=f"{slot_end:%H:%M}",
                    duration_minutes=service.duration_minutes,
                    available=(service_id, day, slot_id) not in self._taken,
                )
            )
            current += timedelta(minutes=60)
        return slots
