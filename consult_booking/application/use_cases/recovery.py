from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from consult_booking.application.state_store import BookingStateStore
from consult_booking.application.use_cases.resource_orchestrator import ResourceOrchestrator
from consult_booking.application.use_cases.step_gate import nearest_valid_step
from consult_booking.domain.entities.api_error import ErrorKind
from consult_booking.domain.entities.booking_state import BookingState, BookingStep, ResourceKind

STEP_RESOURCES: dict[BookingStep, tuple[ResourceKind, ...]] = {
    BookingStep.SERVICE_SELECTION: (ResourceKind.SERVICES,),
    BookingStep.DATE_SELECTION: (ResourceKind.DATES, ResourceKind.TIME_SLOTS),
    BookingStep.CLIENT_INFORMATION: (),
    BookingStep.CONFIRMATION: (ResourceKind.CLIENT_CREATION, ResourceKind.BOOKING),
    BookingStep.SUCCESS: (),
}


def selected_service_unavailable(state: BookingState) -> bool:
    service = state.selected_service
    if service is None:
        return False
    if not service.is_active:
        return True
    if not state.available_services:
        return False
    return not any(option.id == service.id and option.is_active for option in state.available_services)


class ErrorRecovery:
    def __init__(self, store: BookingStateStore, orchestrator: ResourceOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._logger = logging.getLogger(__name__)

    def recover_from_error(self) -> bool:
        """
        Clear recorded API errors and rewind to the nearest consistent step.

        Errors on the current step's own resources are cleared in place so the
        user can retry. A vanished or inactive service, a taken time slot or a
        rejected submission payload rewinds the flow. Client info is kept.
        Returns True when current_step moved back.
        """
        state = self._store.state
        errors = {kind: error for kind, error in state.api_errors.items() if error is not None}
        changes: dict[str, Any] = {"api_errors": {kind: None for kind in ResourceKind}}
        ceiling = state.current_step

        if state.current_step != BookingStep.SUCCESS:
            if selected_service_unavailable(state):
                self._orchestrator.invalidate_service(state.selected_service.id)
                changes.update(
                    selected_service=None,
                    selected_date=None,
                    selected_time_slot=None,
                    available_dates=(),
                    available_time_slots=(),
                )

            booking_error = errors.get(ResourceKind.BOOKING)
            if booking_error is not None and booking_error.kind == ErrorKind.CONFLICT:
                changes["selected_time_slot"] = None

            if any(
                errors.get(kind) is not None and errors[kind].kind == ErrorKind.VALIDATION
                for kind in (ResourceKind.CLIENT_CREATION, ResourceKind.BOOKING)
            ):
                ceiling = min(ceiling, BookingStep.CLIENT_INFORMATION)

        target = nearest_valid_step(replace(state, **changes), ceiling)
        rewound = target < state.current_step
        if rewound:
            changes["current_step"] = target
        self._store.update(**changes)

        in_place = [kind.value for kind in errors if kind in STEP_RESOURCES[state.current_step]]
        self._logger.info(
            "Recovered from error",
            extra={
                "step": target.name,
                "previous": state.current_step.name,
                "rewound": rewound,
                "cleared": [kind.value for kind in errors],
                "retry_in_place": in_place,
            },
        )
        return rewound
