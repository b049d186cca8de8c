from __future__ import annotations

import asyncio

import httpx

from consult_booking.application.exceptions import BookingApiError
from consult_booking.domain.entities.api_error import ClassifiedError, ErrorKind

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "We couldn't reach our booking system. Please check your connection and try again.",
    ErrorKind.VALIDATION: "Some of the details you entered need another look.",
    ErrorKind.CONFLICT: "This time slot is no longer available. Please choose another time.",
    ErrorKind.SERVER: "Something went wrong on our side. Please try again in a moment.",
    ErrorKind.AUTH: "Your session has expired. Please refresh the page and try again.",
    ErrorKind.TIMEOUT: "The request took too long. Please try again.",
}


def kind_for_status(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code in (408, 504):
        return ErrorKind.TIMEOUT
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.VALIDATION


def classify_error(error: BaseException, resource: str | None = None) -> ClassifiedError:
    """Map a raw failure to the booking error taxonomy."""
    if isinstance(error, BookingApiError):
        return ClassifiedError(
            kind=error.kind,
            message=USER_MESSAGES[error.kind],
            resource=resource,
            status_code=error.status_code,
            technical_message=str(error),
            details=dict(error.details),
            payload=error.payload,
        )

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        kind = ErrorKind.TIMEOUT
        status_code = None
    elif isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        kind = kind_for_status(status_code)
    elif isinstance(error, httpx.TransportError):
        kind = ErrorKind.NETWORK
        status_code = None
    else:
        kind = ErrorKind.SERVER
        status_code = None

    return ClassifiedError(
        kind=kind,
        message=USER_MESSAGES[kind],
        resource=resource,
        status_code=status_code,
        technical_message=str(error) or error.__class__.__name__,
    )
