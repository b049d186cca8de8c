from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from consult_booking.application.use_cases.booking_flow import BookingFlow
from consult_booking.domain.entities.booking_state import BookingStep


class ServiceSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: float
    duration_minutes: int
    category: str
    is_active: bool
    description: str | None = None


class TimeSlotSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    start_time: str
    end_time: str
    duration_minutes: int
    available: bool


class AvailableDateSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    available: bool
    slot_count: int | None = None


class ClientInfoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    email: str
    phone: str
    preferred_contact_method: str
    case_type: str
    estimated_loss: str
    urgency_level: str
    case_description: str
    additional_notes: str | None = None
    consent_to_contact: bool
    privacy_policy_accepted: bool
    data_processing_agreed: bool


class BookingStateSchema(BaseModel):
    session_id: str
    current_step: str
    step_index: int
    completed_steps: list[str] = Field(default_factory=list)
    selected_service: ServiceSchema | None = None
    selected_date: str | None = None
    selected_time_slot: TimeSlotSchema | None = None
    client_info: ClientInfoSchema | None = None
    loading_state: dict[str, bool] = Field(default_factory=dict)
    api_errors: dict[str, dict[str, Any] | None] = Field(default_factory=dict)
    booking_reference: str | None = None
    created_client_id: str | None = None
    available_services: list[ServiceSchema] = Field(default_factory=list)
    available_dates: list[AvailableDateSchema] = Field(default_factory=list)
    available_time_slots: list[TimeSlotSchema] = Field(default_factory=list)
    can_go_next: bool = False

    @classmethod
    def from_flow(cls, flow: BookingFlow, include_technical_details: bool = False) -> "BookingStateSchema":
        state = flow.state
        next_step = min(state.current_step + 1, BookingStep.SUCCESS)
        return cls(
            session_id=flow.session_id,
            current_step=state.current_step.name,
            step_index=int(state.current_step),
            completed_steps=[step.name for step in sorted(state.completed_steps)],
            selected_service=state.selected_service,
            selected_date=state.selected_date,
            selected_time_slot=state.selected_time_slot,
            client_info=state.client_info,
            loading_state={kind.value: value for kind, value in state.loading_state.items()},
            api_errors={
                kind.value: error.to_dict(include_technical_details) if error else None
                for kind, error in state.api_errors.items()
            },
            booking_reference=state.booking_reference,
            created_client_id=state.created_client_id,
            available_services=list(state.available_services),
            available_dates=list(state.available_dates),
            available_time_slots=list(state.available_time_slots),
            can_go_next=state.current_step != BookingStep.SUCCESS and flow.can_proceed_to_step(next_step),
        )


class SelectServiceRequest(BaseModel):
    service_id: str = Field(min_length=1)


class SelectDateRequest(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")


class SelectTimeSlotRequest(BaseModel):
    slot_id: str = Field(min_length=1)


class GoToStepRequest(BaseModel):
    step: BookingStep


class FetchResponseSchema(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    from_cache: bool = False
    error: dict[str, Any] | None = None


class SubmissionResponseSchema(BaseModel):
    ok: bool
    booking_reference: str | None = None
    failed_phase: str | None = None
    error: dict[str, Any] | None = None
    state: BookingStateSchema


class RecoverResponseSchema(BaseModel):
    rewound: bool
    state: BookingStateSchema
