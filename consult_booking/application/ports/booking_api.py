from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot


class BookingApiPort(ABC):
    @abstractmethod
    async def list_services(self) -> list[Service]:
        """Fetch the service catalog."""
        raise NotImplementedError

    @abstractmethod
    async def list_available_dates(self, service_id: str) -> list[AvailableDate]:
        """Fetch calendar availability for a service."""
        raise NotImplementedError

    @abstractmethod
    async def list_time_slots(self, service_id: str, date: str) -> list[TimeSlot]:
        """Fetch time slots for a service on a YYYY-MM-DD date."""
        raise NotImplementedError

    @abstractmethod
    async def create_client(self, payload: dict[str, Any]) -> str:
        """Create client record. Returns client_id."""
        raise NotImplementedError

    @abstractmethod
    async def create_booking(self, payload: dict[str, Any]) -> str:
        """Create booking record. Returns booking reference."""
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        raise NotImplementedError
