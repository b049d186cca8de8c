from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    price: float
    duration_minutes: int
    category: str
    is_active: bool = True
    description: str | None = None
