from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from consult_booking.application.dto.booking_payloads import build_booking_payload, build_client_payload
from consult_booking.application.exceptions import ApiValidationError, BookingApiError
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.state_store import BookingStateStore
from consult_booking.application.use_cases.resource_orchestrator import ResourceOrchestrator
from consult_booking.application.utils.error_classifier import classify_error
from consult_booking.domain.entities.api_error import ClassifiedError, ErrorKind
from consult_booking.domain.entities.booking_state import BookingState, BookingStep, ResourceKind


@dataclass(frozen=True)
class SubmissionResult:
    booking_reference: str | None = None
    client_id: str | None = None
    error: ClassifiedError | None = None
    failed_phase: str | None = None  # "precondition", "client" or "booking"

    @property
    def ok(self) -> bool:
        return self.error is None and self.booking_reference is not None


def precondition_problem(state: BookingState) -> str | None:
    if state.current_step != BookingStep.CONFIRMATION:
        return f"Bookings can only be submitted from the confirmation step (current: {state.current_step.name})."
    if state.selected_service is None or state.selected_date is None or state.selected_time_slot is None:
        return "Service, date and time slot must all be selected."
    if state.client_info is None:
        return "Client information is missing."
    if not state.client_info.has_all_consents:
        return "All consent flags must be accepted before submitting."
    return None


class SubmissionPipeline:
    """
    Two-phase write: create the client record, then the booking that references it.

    A client id obtained in phase 1 is kept in the booking state, so a retry
    after a failed phase 2 goes straight to booking creation.
    """

    def __init__(
        self,
        api: BookingApiPort,
        store: BookingStateStore,
        orchestrator: ResourceOrchestrator,
        timeout_seconds: float | None = 20.0,
    ) -> None:
        self._api = api
        self._store = store
        self._orchestrator = orchestrator
        self._timeout_seconds = timeout_seconds
        self._pending: asyncio.Task | None = None
        self._attempt = 0
        self._logger = logging.getLogger(__name__)

    async def submit(self) -> SubmissionResult:
        if self._pending is not None and not self._pending.done():
            self._logger.info("Joining in-flight submission")
            return await asyncio.shield(self._pending)

        state = self._store.state
        if state.current_step == BookingStep.SUCCESS and state.booking_reference is not None:
            return SubmissionResult(booking_reference=state.booking_reference, client_id=state.created_client_id)

        problem = precondition_problem(state)
        if problem is not None:
            self._logger.warning("Submission precondition failed", extra={"phase": "precondition", "reason": problem})
            error = classify_error(ApiValidationError(problem), resource=ResourceKind.BOOKING.value)
            return SubmissionResult(error=error, failed_phase="precondition")

        self._pending = asyncio.create_task(self._run(self._attempt))
        return await asyncio.shield(self._pending)

    def reset(self) -> None:
        """Detach any in-flight submission from the session state."""
        self._attempt += 1
        self._pending = None

    async def _run(self, attempt: int) -> SubmissionResult:
        state = self._store.state
        service = state.selected_service
        date = state.selected_date
        slot = state.selected_time_slot
        info = state.client_info
        if service is None or date is None or slot is None or info is None:
            raise RuntimeError("Submission started without complete booking data")

        client_id = state.created_client_id
        if client_id is None:
            client_id, error = await self._call(
                ResourceKind.CLIENT_CREATION,
                lambda: self._api.create_client(build_client_payload(info)),
                attempt,
            )
            if error is not None:
                return SubmissionResult(error=error, failed_phase="client")
            if not self._is_current(attempt):
                return SubmissionResult(client_id=client_id)
            if self._store.state.created_client_id is None:
                self._store.update(created_client_id=client_id)
            client_id = self._store.state.created_client_id
            self._logger.info("Client record created", extra={"phase": "client", "client_id": client_id})
        else:
            self._logger.info("Reusing client record", extra={"phase": "client", "client_id": client_id})

        reference, error = await self._call(
            ResourceKind.BOOKING,
            lambda: self._api.create_booking(build_booking_payload(client_id, service, date, slot, info)),
            attempt,
        )
        if error is not None:
            if error.kind == ErrorKind.CONFLICT:
                self._orchestrator.invalidate_time_slots(service.id, date)
            return SubmissionResult(client_id=client_id, error=error, failed_phase="booking")

        if self._is_current(attempt):
            self._store.complete_steps(
                BookingStep.CONFIRMATION,
                BookingStep.SUCCESS,
                booking_reference=reference,
                current_step=BookingStep.SUCCESS,
            )
        self._logger.info("Booking created", extra={"phase": "booking", "reference": reference})
        return SubmissionResult(booking_reference=reference, client_id=client_id)

    async def _call(
        self,
        kind: ResourceKind,
        request: Callable[[], Awaitable[str]],
        attempt: int,
    ) -> tuple[str | None, ClassifiedError | None]:
        current = self._is_current(attempt)
        if current:
            self._store.set_loading(kind, True)
            self._store.set_error(kind, None)
        try:
            if self._timeout_seconds is None:
                value = await request()
            else:
                value = await asyncio.wait_for(request(), timeout=self._timeout_seconds)
        except (BookingApiError, httpx.HTTPError, asyncio.TimeoutError) as e:
            error = classify_error(e, resource=kind.value)
            if self._is_current(attempt):
                self._store.set_error(kind, error)
            self._logger.error(
                "Submission phase failed",
                extra={"phase": kind.value, "error_kind": error.kind.value, "error": str(e)},
            )
            return None, error
        finally:
            if self._is_current(attempt):
                self._store.set_loading(kind, False)
        return value, None

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt
