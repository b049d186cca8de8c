from __future__ import annotations

from dataclasses import replace

import pytest

from consult_booking.application.exceptions import ApiValidationError, ConflictError, ServerError
from consult_booking.domain.entities.booking_state import BookingStep, ResourceKind


@pytest.mark.asyncio
async def test_conflict_rewinds_to_date_selection_and_keeps_client_info(confirmation_flow, api):
    api.create_booking.side_effect = ConflictError("slot taken", status_code=409)
    await confirmation_flow.submit_booking()

    rewound = confirmation_flow.recover_from_error()

    state = confirmation_flow.state
    assert rewound
    assert state.current_step == BookingStep.DATE_SELECTION
    assert state.selected_time_slot is None
    assert state.selected_date == "2030-01-07"
    assert state.client_info is not None
    assert state.created_client_id == "c1"
    assert not confirmation_flow.has_api_error()


@pytest.mark.asyncio
async def test_transient_error_is_cleared_in_place(confirmation_flow, api):
    """Retryable failures keep the user on the confirmation step."""
    api.create_booking.side_effect = ServerError("bad gateway", status_code=502)
    await confirmation_flow.submit_booking()
    assert confirmation_flow.has_api_error()

    rewound = confirmation_flow.recover_from_error()

    assert not rewound
    assert confirmation_flow.state.current_step == BookingStep.CONFIRMATION
    assert not confirmation_flow.has_api_error()


@pytest.mark.asyncio
async def test_rejected_payload_returns_to_client_information(confirmation_flow, api):
    api.create_client.side_effect = ApiValidationError("email rejected", status_code=400)
    await confirmation_flow.submit_booking()

    assert confirmation_flow.recover_from_error()
    assert confirmation_flow.state.current_step == BookingStep.CLIENT_INFORMATION
    assert confirmation_flow.state.client_info is not None


@pytest.mark.asyncio
async def test_deactivated_service_rewinds_to_service_selection(confirmation_flow, api, services):
    """A service that disappears from the catalog clears every dependent selection."""
    retired = [replace(services[0], is_active=False), services[1]]
    api.list_services.return_value = retired
    await confirmation_flow.refresh_services()

    assert confirmation_flow.recover_from_error()

    state = confirmation_flow.state
    assert state.current_step == BookingStep.SERVICE_SELECTION
    assert state.selected_service is None
    assert state.selected_date is None
    assert state.selected_time_slot is None
    assert state.client_info is not None


@pytest.mark.asyncio
async def test_recover_on_clean_state_is_a_no_op(flow):
    assert not flow.recover_from_error()
    assert flow.state.current_step == BookingStep.SERVICE_SELECTION
    assert flow.get_api_error_for_resource(ResourceKind.SERVICES) is None
