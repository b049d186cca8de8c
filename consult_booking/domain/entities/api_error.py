from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    SERVER = "server"
    AUTH = "auth"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str  # short, non-technical, safe to show by default
    resource: str | None = None
    status_code: int | None = None
    technical_message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    payload: Any = None  # raw response body, technical view only

    @property
    def is_retryable(self) -> bool:
        return self.kind in {ErrorKind.NETWORK, ErrorKind.SERVER, ErrorKind.TIMEOUT}

    def to_dict(self, include_technical_details: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "resource": self.resource,
        }
        if include_technical_details:
            data["status_code"] = self.status_code
            data["technical_message"] = self.technical_message
            data["details"] = dict(self.details)
            data["payload"] = self.payload
        return data
