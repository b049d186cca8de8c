from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.use_cases.booking_flow import BookingFlow
from consult_booking.domain.entities.booking_state import BookingStep
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot
from consult_booking.infrastructure.booking_api.mock_booking_api import MockBookingApi

BOOKING_DATE = "2030-01-07"


@pytest.fixture
def services() -> list[Service]:
    return [
        Service(id="svc-consult", name="Initial Consultation", price=0.0, duration_minutes=60, category="consultation"),
        Service(id="svc-fraud", name="Investment Fraud Recovery", price=500.0, duration_minutes=90, category="recovery"),
        Service(id="svc-retired", name="Legacy Review", price=100.0, duration_minutes=30, category="review", is_active=False),
    ]


@pytest.fixture
def time_slots() -> list[TimeSlot]:
    return [
        TimeSlot(id="slot-0900", start_time="09:00", end_time="10:00", duration_minutes=60),
        TimeSlot(id="slot-1000", start_time="10:00", end_time="11:00", duration_minutes=60),
        TimeSlot(id="slot-1100", start_time="11:00", end_time="12:00", duration_minutes=60, available=False),
    ]


@pytest.fixture
def api(services, time_slots) -> AsyncMock:
    mock = AsyncMock(spec=BookingApiPort)
    mock.list_services.return_value = list(services)
    mock.list_available_dates.return_value = [
        AvailableDate(date=BOOKING_DATE, available=True, slot_count=2),
        AvailableDate(date="2030-01-08", available=False, slot_count=0),
    ]
    mock.list_time_slots.return_value = list(time_slots)
    mock.create_client.return_value = "c1"
    mock.create_booking.return_value = "b1"
    mock.health_check.return_value = True
    return mock


@pytest.fixture
def client_data() -> dict:
    return {
        "firstName": "Jane",
        "lastName": "O'Neil",
        "email": "Jane.ONeil@Example.com",
        "phone": "+1 555 123 4567",
        "caseType": "investment_fraud",
        "estimatedLoss": "10000-50000",
        "caseDescription": "Transferred savings to a fake trading platform.",
        "urgencyLevel": "high",
        "consentToContact": True,
        "privacyPolicyAccepted": True,
        "dataProcessingAgreed": True,
    }


@pytest.fixture
def flow(api) -> BookingFlow:
    return BookingFlow(api=api, session_id="test-session", fetch_timeout_seconds=1.0, submission_timeout_seconds=1.0)


@pytest_asyncio.fixture
async def confirmation_flow(flow, client_data) -> BookingFlow:
    """A flow walked to CONFIRMATION with every field filled in."""
    await flow.fetch_available_services()
    assert flow.select_service(flow.state.available_services[0])
    assert flow.go_to_next_step()
    assert flow.select_date(BOOKING_DATE)
    await flow.fetch_available_time_slots()
    assert flow.select_time_slot(flow.state.available_time_slots[0])
    assert flow.go_to_next_step()
    assert flow.set_client_info(client_data) == []
    assert flow.go_to_next_step()
    assert flow.state.current_step == BookingStep.CONFIRMATION
    return flow


@pytest.fixture
def mock_api() -> MockBookingApi:
    # 2030-01-07 is a Monday
    return MockBookingApi(start_date=date(2030, 1, 7), days_ahead=7)
