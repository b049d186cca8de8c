from __future__ import annotations

import asyncio

import pytest

from consult_booking.application.use_cases.step_gate import nearest_valid_step, prerequisites_met, transition_allowed
from consult_booking.domain.entities.booking_state import BookingState, BookingStep
from consult_booking.domain.entities.time_slot import TimeSlot

BOOKING_DATE = "2030-01-07"


def test_fresh_state_only_allows_service_selection(services):
    """Nothing beyond the first step is reachable without a service."""
    state = BookingState()

    assert prerequisites_met(state, BookingStep.SERVICE_SELECTION)
    assert not prerequisites_met(state, BookingStep.DATE_SELECTION)
    assert not transition_allowed(state, BookingStep.DATE_SELECTION)
    assert transition_allowed(state, BookingStep.SERVICE_SELECTION)


def test_prerequisites_are_cumulative(services, time_slots):
    """A slot without a service does not open client information."""
    state = BookingState(selected_date=BOOKING_DATE, selected_time_slot=time_slots[0])
    assert not prerequisites_met(state, BookingStep.CLIENT_INFORMATION)

    state = BookingState(
        selected_service=services[0],
        selected_date=BOOKING_DATE,
        selected_time_slot=time_slots[0],
    )
    assert prerequisites_met(state, BookingStep.CLIENT_INFORMATION)
    assert not prerequisites_met(state, BookingStep.CONFIRMATION)


def test_forward_jump_requires_completed_intermediate_steps(services, time_slots):
    """Skipping ahead needs every skipped step completed."""
    state = BookingState(
        selected_service=services[0],
        selected_date=BOOKING_DATE,
        selected_time_slot=time_slots[0],
    )
    assert not transition_allowed(state, BookingStep.CLIENT_INFORMATION)

    completed = BookingState(
        selected_service=services[0],
        selected_date=BOOKING_DATE,
        selected_time_slot=time_slots[0],
        completed_steps=frozenset({BookingStep.SERVICE_SELECTION, BookingStep.DATE_SELECTION}),
    )
    assert transition_allowed(completed, BookingStep.CLIENT_INFORMATION)


def test_nearest_valid_step_walks_back_to_first_satisfied_step(services):
    state = BookingState(selected_service=services[0])

    assert nearest_valid_step(state, BookingStep.CONFIRMATION) == BookingStep.DATE_SELECTION
    assert nearest_valid_step(BookingState(), BookingStep.CONFIRMATION) == BookingStep.SERVICE_SELECTION


@pytest.mark.asyncio
async def test_next_step_is_rejected_until_service_selected(flow):
    """go_to_next_step on a fresh flow leaves current_step unchanged."""
    assert not flow.go_to_next_step()
    assert flow.state.current_step == BookingStep.SERVICE_SELECTION

    await flow.fetch_available_services()
    assert flow.select_service(flow.state.available_services[0])
    assert flow.go_to_next_step()
    assert flow.state.current_step == BookingStep.DATE_SELECTION
    assert BookingStep.SERVICE_SELECTION in flow.state.completed_steps


def test_inactive_service_cannot_be_selected(flow, services):
    assert not flow.select_service(services[2])
    assert flow.state.selected_service is None


def test_date_requires_service_and_iso_format(flow, services):
    assert not flow.select_date(BOOKING_DATE)

    flow.select_service(services[0])
    assert not flow.select_date("07-01-2030")
    assert not flow.select_date("2030-02-30")
    assert not flow.select_date("2030-W02-1")
    assert flow.select_date(BOOKING_DATE)
    assert flow.state.selected_date == BOOKING_DATE


def test_unavailable_slot_is_rejected(flow, services, time_slots):
    flow.select_service(services[0])
    flow.select_date(BOOKING_DATE)

    assert not flow.select_time_slot(time_slots[2])
    assert flow.select_time_slot(time_slots[0])
    assert BookingStep.DATE_SELECTION in flow.state.completed_steps


@pytest.mark.asyncio
async def test_changing_service_clears_date_slot_and_cached_availability(confirmation_flow, api, services):
    """A different service drops the dependent selections and rewinds to date selection."""
    flow = confirmation_flow
    await flow.fetch_available_dates()
    assert api.list_available_dates.await_count == 1

    assert flow.select_service(services[1])

    state = flow.state
    assert state.selected_service == services[1]
    assert state.selected_date is None
    assert state.selected_time_slot is None
    assert state.available_time_slots == ()
    assert state.current_step == BookingStep.DATE_SELECTION
    assert state.client_info is not None

    # back to the first service: its availability is fetched again
    flow.select_service(services[0])
    await flow.fetch_available_dates()
    assert api.list_available_dates.await_count == 2


@pytest.mark.asyncio
async def test_reselecting_same_service_keeps_selections(confirmation_flow, services):
    flow = confirmation_flow

    assert flow.select_service(services[0])

    assert flow.state.selected_time_slot is not None
    assert flow.state.current_step == BookingStep.CONFIRMATION


@pytest.mark.asyncio
async def test_changing_date_clears_slot_and_rewinds(confirmation_flow):
    flow = confirmation_flow

    assert flow.select_date("2030-01-09")

    assert flow.state.selected_time_slot is None
    assert flow.state.current_step == BookingStep.DATE_SELECTION
    assert not flow.can_proceed_to_step(BookingStep.CLIENT_INFORMATION)


@pytest.mark.asyncio
async def test_backward_navigation_is_always_allowed(confirmation_flow):
    flow = confirmation_flow

    assert flow.go_to_step(BookingStep.SERVICE_SELECTION)
    assert flow.state.current_step == BookingStep.SERVICE_SELECTION
    # completed steps let the user jump forward again
    assert flow.go_to_step(BookingStep.CONFIRMATION)


@pytest.mark.asyncio
async def test_missing_consent_blocks_confirmation(confirmation_flow, client_data):
    """Withdrawing consent moves the flow back to client information."""
    flow = confirmation_flow
    client_data["dataProcessingAgreed"] = False

    assert flow.set_client_info(client_data) == []

    assert flow.state.current_step == BookingStep.CLIENT_INFORMATION
    assert not flow.go_to_next_step()


def test_out_of_range_step_is_rejected(flow):
    assert not flow.can_proceed_to_step(7)
    assert not flow.go_to_step(-1)
    assert flow.state.current_step == BookingStep.SERVICE_SELECTION


@pytest.mark.asyncio
async def test_success_step_is_locked_until_reset(confirmation_flow, services):
    flow = confirmation_flow
    result = await flow.submit_booking()
    assert result.ok

    assert not flow.go_to_previous_step()
    assert not flow.go_to_step(BookingStep.SERVICE_SELECTION)
    assert not flow.select_service(services[1])
    assert flow.state.current_step == BookingStep.SUCCESS

    flow.reset_form()
    assert flow.state.current_step == BookingStep.SERVICE_SELECTION


@pytest.mark.asyncio
async def test_changing_date_discards_slots_still_loading_for_old_date(flow, api, services):
    """Slots for the previous date that arrive after a date change never reach state."""
    gate = asyncio.Event()

    async def list_time_slots(service_id, date):
        await gate.wait()
        return [TimeSlot(id="old-date-slot", start_time="09:00", end_time="10:00", duration_minutes=60)]

    api.list_time_slots.side_effect = list_time_slots
    flow.select_service(services[0])
    flow.select_date(BOOKING_DATE)

    pending = asyncio.create_task(flow.fetch_available_time_slots())
    for _ in range(5):
        await asyncio.sleep(0)
    assert flow.select_date("2030-01-08")
    gate.set()
    result = await pending

    assert not result.applied
    assert flow.state.selected_date == "2030-01-08"
    assert flow.state.available_time_slots == ()
