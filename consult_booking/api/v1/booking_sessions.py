from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from consult_booking.api.v1.schemas import (
    AvailableDateSchema,
    BookingStateSchema,
    FetchResponseSchema,
    GoToStepRequest,
    RecoverResponseSchema,
    SelectDateRequest,
    SelectServiceRequest,
    SelectTimeSlotRequest,
    ServiceSchema,
    SubmissionResponseSchema,
    TimeSlotSchema,
)
from consult_booking.application.ports.session_store import SessionStorePort
from consult_booking.application.use_cases.booking_flow import BookingFlow
from consult_booking.application.use_cases.resource_orchestrator import FetchResult
from consult_booking.core.config import settings
from consult_booking.wiring.dependencies import get_session_store

router = APIRouter(prefix="/sessions")


def _flow_or_404(session_id: str, store: SessionStorePort) -> BookingFlow:
    flow = store.get(session_id)
    if flow is None:
        raise HTTPException(status_code=404, detail=f"Booking session {session_id} not found")
    return flow


def _state(flow: BookingFlow) -> BookingStateSchema:
    return BookingStateSchema.from_flow(flow, settings.SHOW_TECHNICAL_ERROR_DETAILS)


def _fetch_response(result: FetchResult, schema: Any) -> FetchResponseSchema:
    return FetchResponseSchema(
        items=[schema.model_validate(item).model_dump() for item in result.value],
        from_cache=result.from_cache,
        error=result.error.to_dict(settings.SHOW_TECHNICAL_ERROR_DETAILS) if result.error else None,
    )


def _rejected(flow: BookingFlow, detail: str) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"message": detail, "current_step": flow.state.current_step.name},
    )


@router.post("", response_model=BookingStateSchema, status_code=201)
async def create_session(store: SessionStorePort = Depends(get_session_store)):
    return _state(store.create())


@router.get("/{session_id}", response_model=BookingStateSchema)
async def get_session(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    return _state(_flow_or_404(session_id, store))


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Booking session {session_id} not found")


@router.get("/{session_id}/services", response_model=FetchResponseSchema)
async def list_services(
    session_id: str,
    force_refresh: bool = False,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    result = await flow.fetch_available_services(force_refresh=force_refresh)
    return _fetch_response(result, ServiceSchema)


@router.get("/{session_id}/dates", response_model=FetchResponseSchema)
async def list_dates(
    session_id: str,
    service_id: str | None = None,
    force_refresh: bool = False,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    result = await flow.fetch_available_dates(service_id=service_id, force_refresh=force_refresh)
    return _fetch_response(result, AvailableDateSchema)


@router.get("/{session_id}/time-slots", response_model=FetchResponseSchema)
async def list_time_slots(
    session_id: str,
    date: str | None = None,
    service_id: str | None = None,
    force_refresh: bool = False,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    result = await flow.fetch_available_time_slots(date=date, service_id=service_id, force_refresh=force_refresh)
    return _fetch_response(result, TimeSlotSchema)


@router.post("/{session_id}/service", response_model=BookingStateSchema)
async def select_service(
    session_id: str,
    req: SelectServiceRequest,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    if not flow.state.available_services:
        await flow.fetch_available_services()

    service = next((s for s in flow.state.available_services if s.id == req.service_id), None)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Service {req.service_id} not found")
    if not flow.select_service(service):
        raise _rejected(flow, f"Service {req.service_id} cannot be selected")
    return _state(flow)


@router.post("/{session_id}/date", response_model=BookingStateSchema)
async def select_date(
    session_id: str,
    req: SelectDateRequest,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    if not flow.select_date(req.date):
        raise _rejected(flow, f"Date {req.date} cannot be selected")
    return _state(flow)


@router.post("/{session_id}/time-slot", response_model=BookingStateSchema)
async def select_time_slot(
    session_id: str,
    req: SelectTimeSlotRequest,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    if not flow.state.available_time_slots and flow.state.selected_date:
        await flow.fetch_available_time_slots()

    slot = next((s for s in flow.state.available_time_slots if s.id == req.slot_id), None)
    if slot is None:
        raise HTTPException(status_code=404, detail=f"Time slot {req.slot_id} not found")
    if not flow.select_time_slot(slot):
        raise _rejected(flow, f"Time slot {req.slot_id} cannot be selected")
    return _state(flow)


@router.post("/{session_id}/client-info", response_model=BookingStateSchema)
async def set_client_info(
    session_id: str,
    payload: dict[str, Any],
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    problems = flow.set_client_info(payload)
    if problems:
        return JSONResponse(
            status_code=422,
            content={"detail": [{"field": p.field, "message": p.message} for p in problems]},
        )
    return _state(flow)


@router.post("/{session_id}/step", response_model=BookingStateSchema)
async def go_to_step(
    session_id: str,
    req: GoToStepRequest,
    store: SessionStorePort = Depends(get_session_store),
):
    flow = _flow_or_404(session_id, store)
    if not flow.go_to_step(req.step):
        raise _rejected(flow, f"Cannot move to {req.step.name}")
    return _state(flow)


@router.post("/{session_id}/next", response_model=BookingStateSchema)
async def go_to_next_step(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    flow = _flow_or_404(session_id, store)
    if not flow.go_to_next_step():
        raise _rejected(flow, "Cannot move to the next step")
    return _state(flow)


@router.post("/{session_id}/previous", response_model=BookingStateSchema)
async def go_to_previous_step(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    flow = _flow_or_404(session_id, store)
    if not flow.go_to_previous_step():
        raise _rejected(flow, "Cannot move to the previous step")
    return _state(flow)


@router.post("/{session_id}/submit", response_model=SubmissionResponseSchema)
async def submit_booking(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    flow = _flow_or_404(session_id, store)
    result = await flow.submit_booking()
    return SubmissionResponseSchema(
        ok=result.ok,
        booking_reference=result.booking_reference,
        failed_phase=result.failed_phase,
        error=result.error.to_dict(settings.SHOW_TECHNICAL_ERROR_DETAILS) if result.error else None,
        state=_state(flow),
    )


@router.post("/{session_id}/recover", response_model=RecoverResponseSchema)
async def recover_from_error(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    flow = _flow_or_404(session_id, store)
    rewound = flow.recover_from_error()
    return RecoverResponseSchema(rewound=rewound, state=_state(flow))


@router.post("/{session_id}/reset", response_model=BookingStateSchema)
async def reset_session(session_id: str, store: SessionStorePort = Depends(get_session_store)):
    flow = _flow_or_404(session_id, store)
    flow.reset_form()
    return _state(flow)
