from __future__ import annotations

import asyncio

import pytest

from consult_booking.application.exceptions import ApiValidationError, ConflictError, NetworkError, ServerError
from consult_booking.domain.entities.api_error import ErrorKind
from consult_booking.domain.entities.booking_state import BookingStep, ResourceKind


@pytest.mark.asyncio
async def test_two_phase_submission_happy_path(confirmation_flow, api):
    """Client is created first and its id is sent with the booking."""
    result = await confirmation_flow.submit_booking()

    assert result.ok
    assert result.booking_reference == "b1"
    assert result.client_id == "c1"

    state = confirmation_flow.state
    assert state.current_step == BookingStep.SUCCESS
    assert state.booking_reference == "b1"
    assert state.created_client_id == "c1"
    assert {BookingStep.CONFIRMATION, BookingStep.SUCCESS} <= state.completed_steps
    assert not any(state.loading_state.values())

    client_payload = api.create_client.await_args.args[0]
    assert client_payload["email"] == "jane.oneil@example.com"
    assert client_payload["firstName"] == "Jane"

    booking_payload = api.create_booking.await_args.args[0]
    assert booking_payload["clientId"] == "c1"
    assert booking_payload["serviceId"] == "svc-consult"
    assert booking_payload["date"] == "2030-01-07"
    assert booking_payload["timeSlot"] == {"id": "slot-0900", "startTime": "09:00", "endTime": "10:00"}
    assert booking_payload["caseType"] == "investment_fraud"


@pytest.mark.asyncio
async def test_retry_after_booking_failure_reuses_client(confirmation_flow, api):
    """A failed phase 2 keeps the client id, so the retry only creates the booking."""
    api.create_booking.side_effect = [ServerError("upstream down", status_code=503), "b1"]

    first = await confirmation_flow.submit_booking()

    assert not first.ok
    assert first.failed_phase == "booking"
    assert first.error.kind == ErrorKind.SERVER
    assert confirmation_flow.state.created_client_id == "c1"
    assert confirmation_flow.state.current_step == BookingStep.CONFIRMATION
    assert confirmation_flow.get_api_error_for_resource(ResourceKind.BOOKING).kind == ErrorKind.SERVER

    second = await confirmation_flow.submit_booking()

    assert second.ok
    assert second.booking_reference == "b1"
    assert api.create_client.await_count == 1
    assert api.create_booking.await_count == 2
    assert confirmation_flow.get_api_error_for_resource(ResourceKind.BOOKING) is None


@pytest.mark.asyncio
async def test_client_creation_failure_stops_before_booking(confirmation_flow, api):
    api.create_client.side_effect = NetworkError("connection refused")

    result = await confirmation_flow.submit_booking()

    assert result.failed_phase == "client"
    assert result.error.kind == ErrorKind.NETWORK
    api.create_booking.assert_not_awaited()
    assert confirmation_flow.state.created_client_id is None
    assert confirmation_flow.is_resource_loading(ResourceKind.CLIENT_CREATION) is False


@pytest.mark.asyncio
async def test_submit_outside_confirmation_makes_no_network_call(flow, api):
    result = await flow.submit_booking()

    assert result.failed_phase == "precondition"
    assert result.error.kind == ErrorKind.VALIDATION
    api.create_client.assert_not_awaited()
    api.create_booking.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_submits_create_one_booking(confirmation_flow, api):
    """Double submission joins the in-flight attempt."""
    gate = asyncio.Event()

    async def create_booking(payload):
        await gate.wait()
        return "b1"

    api.create_booking.side_effect = create_booking

    first = asyncio.create_task(confirmation_flow.submit_booking())
    second = asyncio.create_task(confirmation_flow.submit_booking())
    for _ in range(5):
        await asyncio.sleep(0)
    assert confirmation_flow.is_resource_loading(ResourceKind.BOOKING)

    gate.set()
    results = await asyncio.gather(first, second)

    assert [r.booking_reference for r in results] == ["b1", "b1"]
    assert api.create_client.await_count == 1
    assert api.create_booking.await_count == 1


@pytest.mark.asyncio
async def test_submit_after_success_returns_existing_reference(confirmation_flow, api):
    await confirmation_flow.submit_booking()
    again = await confirmation_flow.submit_booking()

    assert again.ok
    assert again.booking_reference == "b1"
    assert api.create_booking.await_count == 1


@pytest.mark.asyncio
async def test_conflict_invalidates_cached_time_slots(confirmation_flow, api):
    """A taken slot forces fresh availability on the next fetch."""
    api.create_booking.side_effect = ConflictError("slot taken", status_code=409)
    assert api.list_time_slots.await_count == 1

    result = await confirmation_flow.submit_booking()
    assert result.error.kind == ErrorKind.CONFLICT

    await confirmation_flow.fetch_available_time_slots()
    assert api.list_time_slots.await_count == 2


@pytest.mark.asyncio
async def test_reset_during_submission_discards_late_result(confirmation_flow, api):
    """A booking that completes after reset_form never touches the fresh state."""
    gate = asyncio.Event()

    async def create_booking(payload):
        await gate.wait()
        return "b-late"

    api.create_booking.side_effect = create_booking

    pending = asyncio.create_task(confirmation_flow.submit_booking())
    for _ in range(5):
        await asyncio.sleep(0)
    confirmation_flow.reset_form()
    gate.set()
    result = await pending

    assert result.booking_reference == "b-late"
    state = confirmation_flow.state
    assert state.current_step == BookingStep.SERVICE_SELECTION
    assert state.booking_reference is None
    assert not state.loading_state[ResourceKind.BOOKING]


@pytest.mark.asyncio
async def test_submission_timeout_is_classified(confirmation_flow, api):
    async def hang(payload):
        await asyncio.sleep(10)

    api.create_booking.side_effect = hang

    result = await confirmation_flow.submit_booking()

    assert result.error.kind == ErrorKind.TIMEOUT
    assert result.failed_phase == "booking"
    assert confirmation_flow.state.created_client_id == "c1"


@pytest.mark.asyncio
async def test_validation_error_details_are_kept(confirmation_flow, api):
    api.create_client.side_effect = ApiValidationError(
        "Invalid phone", status_code=422, details={"phone": "format"}
    )

    result = await confirmation_flow.submit_booking()

    assert result.error.kind == ErrorKind.VALIDATION
    assert result.error.details == {"phone": "format"}
    assert "details" not in result.error.to_dict()
    assert result.error.to_dict(include_technical_details=True)["details"] == {"phone": "format"}
