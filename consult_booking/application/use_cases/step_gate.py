from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Mapping

from pydantic import ValidationError

from consult_booking.application.dto.booking_payloads import ClientInfoInput, FieldError, field_errors, is_iso_date
from consult_booking.application.state_store import BookingStateStore
from consult_booking.application.use_cases.resource_orchestrator import ResourceOrchestrator
from consult_booking.domain.entities.booking_state import BookingState, BookingStep, ResourceKind
from consult_booking.domain.entities.client_info import ClientInfo
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import TimeSlot


def prerequisites_met(state: BookingState, step: BookingStep) -> bool:
    """Whether every field required to enter `step` (and all earlier steps) is present."""
    if step >= BookingStep.DATE_SELECTION and state.selected_service is None:
        return False
    if step >= BookingStep.CLIENT_INFORMATION and (state.selected_date is None or state.selected_time_slot is None):
        return False
    if step >= BookingStep.CONFIRMATION and (state.client_info is None or not state.client_info.has_all_consents):
        return False
    if step >= BookingStep.SUCCESS and state.booking_reference is None:
        return False
    return True


def nearest_valid_step(state: BookingState, ceiling: BookingStep) -> BookingStep:
    for value in range(ceiling, BookingStep.SERVICE_SELECTION - 1, -1):
        step = BookingStep(value)
        if prerequisites_met(state, step):
            return step
    return BookingStep.SERVICE_SELECTION


def transition_allowed(state: BookingState, target: BookingStep) -> bool:
    current = state.current_step
    if target == current:
        return True
    if current == BookingStep.SUCCESS:
        # a finished booking is only left through a reset
        return False
    if target < current:
        return True
    skipped = range(current, target)
    if target > current + 1 and not all(BookingStep(step) in state.completed_steps for step in skipped):
        return False
    return prerequisites_met(state, target)


class StepGate:
    def __init__(self, store: BookingStateStore, orchestrator: ResourceOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._logger = logging.getLogger(__name__)

    def can_proceed_to_step(self, target: BookingStep | int) -> bool:
        try:
            step = BookingStep(target)
        except ValueError:
            return False
        return transition_allowed(self._store.state, step)

    def go_to_step(self, target: BookingStep | int) -> bool:
        state = self._store.state
        if not self.can_proceed_to_step(target):
            self._logger.info(
                "Step transition rejected",
                extra={"step": state.current_step.name, "target": str(target)},
            )
            return False
        step = BookingStep(target)
        if step != state.current_step:
            self._store.update(current_step=step)
            self._logger.info("Step changed", extra={"step": step.name, "previous": state.current_step.name})
        return True

    def go_to_next_step(self) -> bool:
        current = self._store.state.current_step
        if current == BookingStep.SUCCESS:
            return False
        return self.go_to_step(current + 1)

    def go_to_previous_step(self) -> bool:
        current = self._store.state.current_step
        if current == BookingStep.SERVICE_SELECTION:
            return False
        return self.go_to_step(current - 1)

    def select_service(self, service: Service) -> bool:
        if self._locked():
            return False
        if not service.id or not service.is_active:
            self._logger.info("Service not selectable", extra={"service": service.id})
            return False

        state = self._store.state
        changes: dict[str, Any] = {"selected_service": service}
        previous = state.selected_service
        if previous is not None and previous.id != service.id:
            # date and slot belong to the previous service's availability
            self._orchestrator.invalidate_service(previous.id)
            changes.update(
                selected_date=None,
                selected_time_slot=None,
                available_dates=(),
                available_time_slots=(),
            )
            if state.current_step > BookingStep.DATE_SELECTION:
                changes["current_step"] = BookingStep.DATE_SELECTION

        self._store.complete_steps(BookingStep.SERVICE_SELECTION, **changes)
        self._logger.info("Service selected", extra={"service": service.id})
        return True

    def select_date(self, date: str) -> bool:
        state = self._store.state
        if self._locked() or state.selected_service is None or not is_iso_date(date):
            self._logger.info("Date not selectable", extra={"date": date})
            return False
        if date == state.selected_date:
            return True

        # slots still loading belong to the previous date
        self._orchestrator.supersede(ResourceKind.TIME_SLOTS)
        changes: dict[str, Any] = {
            "selected_date": date,
            "selected_time_slot": None,
            "available_time_slots": (),
        }
        if state.current_step > BookingStep.DATE_SELECTION:
            changes["current_step"] = BookingStep.DATE_SELECTION
        self._store.update(**changes)
        return True

    def select_time_slot(self, slot: TimeSlot) -> bool:
        state = self._store.state
        if self._locked() or state.selected_date is None or not slot.available:
            self._logger.info("Time slot not selectable", extra={"slot": slot.id, "available": slot.available})
            return False
        self._store.complete_steps(BookingStep.DATE_SELECTION, selected_time_slot=slot)
        return True

    def set_client_info(self, info: ClientInfo | Mapping[str, Any]) -> list[FieldError]:
        """Validate and store client data. Returns field errors; empty when stored."""
        if self._locked():
            return [FieldError(field="__root__", message="The booking is already complete.")]
        raw = asdict(info) if isinstance(info, ClientInfo) else dict(info)
        try:
            validated = ClientInfoInput.model_validate(raw).to_entity()
        except ValidationError as e:
            errors = field_errors(e)
            self._logger.info("Client info rejected", extra={"fields": [error.field for error in errors]})
            return errors

        state = self._store.state
        changes: dict[str, Any] = {"client_info": validated}
        if not validated.has_all_consents:
            if state.current_step > BookingStep.CLIENT_INFORMATION:
                changes["current_step"] = BookingStep.CLIENT_INFORMATION
            self._store.update(**changes)
        else:
            self._store.complete_steps(BookingStep.CLIENT_INFORMATION, **changes)
        return []

    def _locked(self) -> bool:
        if self._store.state.current_step == BookingStep.SUCCESS:
            self._logger.info("Selection ignored after booking completed")
            return True
        return False
