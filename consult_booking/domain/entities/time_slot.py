from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TimeSlot:
    id: str
    start_time: str  # "HH:MM" or full ISO datetime, as sent by the availability API
    end_time: str
    duration_minutes: int
    available: bool = True


@dataclass(frozen=True)
class AvailableDate:
    date: str  # YYYY-MM-DD
    available: bool = True
    slot_count: int | None = None
