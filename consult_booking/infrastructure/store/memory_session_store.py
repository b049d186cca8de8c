from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable

from consult_booking.application.ports.session_store import SessionStorePort
from consult_booking.application.use_cases.booking_flow import BookingFlow


class MemorySessionStore(SessionStorePort):
    def __init__(self, flow_factory: Callable[[], BookingFlow], max_sessions: int = 1000) -> None:
        self._flow_factory = flow_factory
        self._max_sessions = max_sessions
        self._flows: OrderedDict[str, BookingFlow] = OrderedDict()
        self._logger = logging.getLogger(__name__)

    def create(self) -> BookingFlow:
        flow = self._flow_factory()
        self._flows[flow.session_id] = flow
        while len(self._flows) > self._max_sessions:
            evicted_id, evicted = self._flows.popitem(last=False)
            evicted.reset_form()
            self._logger.info("Booking session evicted", extra={"session_id": evicted_id})
        self._logger.info("Booking session created", extra={"session_id": flow.session_id})
        return flow

    def get(self, session_id: str) -> BookingFlow | None:
        flow = self._flows.get(session_id)
        if flow is not None:
            self._flows.move_to_end(session_id)
        return flow

    def delete(self, session_id: str) -> bool:
        flow = self._flows.pop(session_id, None)
        if flow is None:
            return False
        flow.reset_form()
        self._logger.info("Booking session closed", extra={"session_id": session_id})
        return True

    def count(self) -> int:
        return len(self._flows)
