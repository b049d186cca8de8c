from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any

from consult_booking.domain.entities.api_error import ClassifiedError
from consult_booking.domain.entities.booking_state import BookingState, BookingStep, ResourceKind


def _read_only(state: BookingState) -> BookingState:
    # the per-resource maps are only changed through set_loading / set_error
    return replace(
        state,
        loading_state=MappingProxyType(dict(state.loading_state)),
        api_errors=MappingProxyType(dict(state.api_errors)),
    )


class BookingStateStore:
    """Single writer for the BookingState aggregate of one booking session."""

    def __init__(self, initial: BookingState | None = None) -> None:
        self._state = _read_only(initial or BookingState())
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> BookingState:
        return self._state

    def update(self, **changes: Any) -> BookingState:
        self._state = _read_only(replace(self._state, **changes))
        return self._state

    def complete_steps(self, *steps: BookingStep, **changes: Any) -> BookingState:
        completed = self._state.completed_steps.union(steps)
        return self.update(completed_steps=completed, **changes)

    def set_loading(self, resource: ResourceKind, is_loading: bool) -> None:
        if self._state.loading_state.get(resource) == is_loading:
            return
        loading_state = dict(self._state.loading_state)
        loading_state[resource] = is_loading
        self.update(loading_state=loading_state)

    def set_error(self, resource: ResourceKind, error: ClassifiedError | None) -> None:
        api_errors = dict(self._state.api_errors)
        api_errors[resource] = error
        self.update(api_errors=api_errors)

    def clear_errors(self) -> None:
        self.update(api_errors={kind: None for kind in ResourceKind})

    def reset(self) -> BookingState:
        self._logger.info("Booking state reset", extra={"step": self._state.current_step.name})
        self._state = _read_only(BookingState())
        return self._state
