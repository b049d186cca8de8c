#!/usr/bin/env python3
"""
Local booking walkthrough (no HTTP, no real booking backend).

Usage:
  python3 scripts/booking_local.py
  python3 scripts/booking_local.py --conflict

What it does:
- Drives one BookingFlow against MockBookingApi through every step
- Prints the step, loading flags and errors after each action
- With --conflict the chosen slot is taken before submission, then the
  flow recovers, picks the next free slot and submits again
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from consult_booking.application.use_cases.booking_flow import BookingFlow  # noqa: E402
from consult_booking.infrastructure.booking_api.mock_booking_api import MockBookingApi  # noqa: E402

CLIENT = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "Jane.Doe@Example.com",
    "phone": "+1 555 123 4567",
    "caseType": "investment_fraud",
    "estimatedLoss": "10000-50000",
    "caseDescription": "Lost savings to a fake trading platform.",
    "urgencyLevel": "high",
    "consentToContact": True,
    "privacyPolicyAccepted": True,
    "dataProcessingAgreed": True,
}


def _print_state(label: str, flow: BookingFlow) -> None:
    state = flow.state
    errors = {kind.value: error.message for kind, error in state.api_errors.items() if error}
    loading = [kind.value for kind, value in state.loading_state.items() if value]
    print(f"\n[{label}]")
    print(f"  step:      {state.current_step.name}")
    print(f"  completed: {', '.join(step.name for step in sorted(state.completed_steps)) or '-'}")
    print(f"  service:   {state.selected_service.name if state.selected_service else '-'}")
    print(f"  date:      {state.selected_date or '-'}")
    print(f"  slot:      {state.selected_time_slot.id if state.selected_time_slot else '-'}")
    if loading:
        print(f"  loading:   {', '.join(loading)}")
    if errors:
        print(f"  errors:    {errors}")
    if state.booking_reference:
        print(f"  reference: {state.booking_reference}")


async def run(conflict: bool) -> int:
    api = MockBookingApi()
    flow = BookingFlow(api=api)

    services = await flow.fetch_available_services()
    if not services.ok or not flow.state.active_services:
        print("No services available")
        return 1
    flow.select_service(flow.state.active_services[0])
    flow.go_to_next_step()
    _print_state("service selected", flow)

    await flow.fetch_available_dates()
    open_dates = [d for d in flow.state.available_dates if d.available]
    flow.select_date(open_dates[0].date)
    await flow.fetch_available_time_slots()
    slot = flow.state.selectable_time_slots[0]
    flow.select_time_slot(slot)
    flow.go_to_next_step()
    _print_state("date and slot selected", flow)

    problems = flow.set_client_info(CLIENT)
    if problems:
        for problem in problems:
            print(f"  invalid {problem.field}: {problem.message}")
        return 1
    flow.go_to_next_step()
    _print_state("client info stored", flow)

    if conflict:
        api.reserve(flow.state.selected_service.id, flow.state.selected_date, slot.id)

    result = await flow.submit_booking()
    _print_state("submitted", flow)

    if not result.ok and conflict:
        flow.recover_from_error()
        _print_state("recovered", flow)
        await flow.fetch_available_time_slots()
        flow.select_time_slot(flow.state.selectable_time_slots[0])
        flow.go_to_next_step()
        flow.go_to_next_step()
        result = await flow.submit_booking()
        _print_state("resubmitted", flow)

    print(f"\nAPI calls: {dict(api.calls)}")
    return 0 if result.ok else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk a booking through the local mock backend")
    parser.add_argument("--conflict", action="store_true", help="take the chosen slot before submitting")
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)
    raise SystemExit(asyncio.run(run(args.conflict)))


if __name__ == "__main__":
    main()
