from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from consult_booking.application.dto.booking_payloads import FieldError
from consult_booking.application.exceptions import BookingApiError
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.resource_cache import ResourceCache
from consult_booking.application.state_store import BookingStateStore
from consult_booking.application.use_cases.recovery import ErrorRecovery
from consult_booking.application.use_cases.resource_orchestrator import FetchResult, ResourceOrchestrator
from consult_booking.application.use_cases.step_gate import StepGate
from consult_booking.application.use_cases.submission import SubmissionPipeline, SubmissionResult
from consult_booking.domain.entities.api_error import ClassifiedError
from consult_booking.domain.entities.booking_state import BookingState, BookingStep, ResourceKind
from consult_booking.domain.entities.client_info import ClientInfo
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import TimeSlot


@dataclass(frozen=True)
class CompleteBookingData:
    service: Service
    date: str
    time_slot: TimeSlot
    client_info: ClientInfo


def _resource_kind(resource: ResourceKind | str) -> ResourceKind | None:
    try:
        return ResourceKind(resource)
    except ValueError:
        return None


class BookingFlow:
    """One booking session: step gate, resource orchestration, submission and recovery."""

    def __init__(
        self,
        api: BookingApiPort,
        session_id: str | None = None,
        fetch_timeout_seconds: float | None = 15.0,
        submission_timeout_seconds: float | None = 20.0,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self._api = api
        self._store = BookingStateStore()
        self._orchestrator = ResourceOrchestrator(
            api=api,
            store=self._store,
            cache=ResourceCache(),
            timeout_seconds=fetch_timeout_seconds,
        )
        self._gate = StepGate(self._store, self._orchestrator)
        self._pipeline = SubmissionPipeline(
            api=api,
            store=self._store,
            orchestrator=self._orchestrator,
            timeout_seconds=submission_timeout_seconds,
        )
        self._recovery = ErrorRecovery(self._store, self._orchestrator)
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> BookingState:
        return self._store.state

    # selections

    def select_service(self, service: Service) -> bool:
        return self._gate.select_service(service)

    def select_date(self, date: str) -> bool:
        return self._gate.select_date(date)

    def select_time_slot(self, slot: TimeSlot) -> bool:
        return self._gate.select_time_slot(slot)

    def set_client_info(self, info: ClientInfo | Mapping[str, Any]) -> list[FieldError]:
        return self._gate.set_client_info(info)

    # navigation

    def go_to_step(self, target: BookingStep | int) -> bool:
        return self._gate.go_to_step(target)

    def go_to_next_step(self) -> bool:
        return self._gate.go_to_next_step()

    def go_to_previous_step(self) -> bool:
        return self._gate.go_to_previous_step()

    def can_proceed_to_step(self, target: BookingStep | int) -> bool:
        return self._gate.can_proceed_to_step(target)

    # remote reads

    async def fetch_available_services(self, force_refresh: bool = False) -> FetchResult:
        return await self._orchestrator.fetch_services(force_refresh=force_refresh)

    async def fetch_available_dates(self, service_id: str | None = None, force_refresh: bool = False) -> FetchResult:
        return await self._orchestrator.fetch_dates(service_id or self._selected_service_id(), force_refresh)

    async def fetch_available_time_slots(
        self,
        date: str | None = None,
        service_id: str | None = None,
        force_refresh: bool = False,
    ) -> FetchResult:
        return await self._orchestrator.fetch_time_slots(
            service_id or self._selected_service_id(),
            date or self.state.selected_date or "",
            force_refresh,
        )

    async def refresh_services(self) -> FetchResult:
        return await self.fetch_available_services(force_refresh=True)

    def clear_cache(self) -> None:
        self._orchestrator.clear()

    # submission and recovery

    async def submit_booking(self) -> SubmissionResult:
        return await self._pipeline.submit()

    def recover_from_error(self) -> bool:
        return self._recovery.recover_from_error()

    def reset_form(self) -> None:
        self._pipeline.reset()
        self._orchestrator.clear()
        self._store.reset()
        self._logger.info("Booking form reset", extra={"session_id": self.session_id})

    # queries

    def is_resource_loading(self, resource: ResourceKind | str) -> bool:
        kind = _resource_kind(resource)
        return kind is not None and bool(self.state.loading_state.get(kind, False))

    def has_api_error(self) -> bool:
        return any(error is not None for error in self.state.api_errors.values())

    def get_api_error_for_resource(self, resource: ResourceKind | str) -> ClassifiedError | None:
        kind = _resource_kind(resource)
        return None if kind is None else self.state.api_errors.get(kind)

    def get_complete_booking_data(self) -> CompleteBookingData | None:
        state = self.state
        if (
            state.selected_service is None
            or state.selected_date is None
            or state.selected_time_slot is None
            or state.client_info is None
        ):
            return None
        return CompleteBookingData(
            service=state.selected_service,
            date=state.selected_date,
            time_slot=state.selected_time_slot,
            client_info=state.client_info,
        )

    async def check_health(self) -> bool:
        try:
            return await self._api.health_check()
        except (BookingApiError, httpx.HTTPError) as e:
            self._logger.warning("Booking API health check failed", extra={"error": str(e)})
            return False

    def _selected_service_id(self) -> str:
        service = self.state.selected_service
        return service.id if service else ""
