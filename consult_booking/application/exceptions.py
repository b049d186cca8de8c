from __future__ import annotations

from typing import Any

from consult_booking.domain.entities.api_error import ErrorKind


class BookingApiError(RuntimeError):
    """Raised by booking API adapters when a remote call fails."""

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = dict(details or {})
        self.payload = payload


class NetworkError(BookingApiError):
    """Request could not reach the server."""

    kind = ErrorKind.NETWORK


class ApiValidationError(BookingApiError):
    """4xx rejection carrying field-level details."""

    kind = ErrorKind.VALIDATION


class ConflictError(BookingApiError):
    """Resource state changed underneath us (e.g. time slot already taken)."""

    kind = ErrorKind.CONFLICT


class ServerError(BookingApiError):
    kind = ErrorKind.SERVER


class AuthError(BookingApiError):
    """Session token expired or invalid."""

    kind = ErrorKind.AUTH


class ApiTimeoutError(BookingApiError):
    kind = ErrorKind.TIMEOUT
