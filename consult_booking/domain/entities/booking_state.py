from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Mapping

from consult_booking.domain.entities.api_error import ClassifiedError
from consult_booking.domain.entities.client_info import ClientInfo
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot


class BookingStep(IntEnum):
    SERVICE_SELECTION = 0
    DATE_SELECTION = 1
    CLIENT_INFORMATION = 2
    CONFIRMATION = 3
    SUCCESS = 4


class ResourceKind(str, Enum):
    SERVICES = "services"
    DATES = "dates"
    TIME_SLOTS = "timeSlots"
    BOOKING = "booking"
    CLIENT_CREATION = "clientCreation"


def _idle_loading_state() -> dict[ResourceKind, bool]:
    return {kind: False for kind in ResourceKind}


def _empty_api_errors() -> dict[ResourceKind, ClassifiedError | None]:
    return {kind: None for kind in ResourceKind}


@dataclass(frozen=True)
class BookingState:
    current_step: BookingStep = BookingStep.SERVICE_SELECTION
    completed_steps: frozenset[BookingStep] = frozenset()
    selected_service: Service | None = None
    selected_date: str | None = None  # YYYY-MM-DD
    selected_time_slot: TimeSlot | None = None
    client_info: ClientInfo | None = None
    loading_state: Mapping[ResourceKind, bool] = field(default_factory=_idle_loading_state)
    api_errors: Mapping[ResourceKind, ClassifiedError | None] = field(default_factory=_empty_api_errors)
    booking_reference: str | None = None
    created_client_id: str | None = None
    # options last applied by the resource orchestrator
    available_services: tuple[Service, ...] = ()
    available_dates: tuple[AvailableDate, ...] = ()
    available_time_slots: tuple[TimeSlot, ...] = ()

    @property
    def booking_complete(self) -> bool:
        return self.booking_reference is not None

    @property
    def selectable_time_slots(self) -> tuple[TimeSlot, ...]:
        return tuple(slot for slot in self.available_time_slots if slot.available)

    @property
    def active_services(self) -> tuple[Service, ...]:
        return tuple(service for service in self.available_services if service.is_active)
