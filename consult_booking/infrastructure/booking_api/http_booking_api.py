from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from consult_booking.application.dto.booking_payloads import (
    AvailableDatePayload,
    CreatedRecordPayload,
    ServicePayload,
    TimeSlotPayload,
)
from consult_booking.application.exceptions import (
    ApiTimeoutError,
    ApiValidationError,
    AuthError,
    BookingApiError,
    ConflictError,
    NetworkError,
    ServerError,
)
from consult_booking.application.ports.booking_api import BookingApiPort
from consult_booking.application.utils.error_classifier import kind_for_status
from consult_booking.core.config import settings
from consult_booking.domain.entities.api_error import ErrorKind
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot

T = TypeVar("T")

_ERRORS_BY_KIND: dict[ErrorKind, type[BookingApiError]] = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.VALIDATION: ApiValidationError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.AUTH: AuthError,
    ErrorKind.TIMEOUT: ApiTimeoutError,
}

CONFLICT_CODES = {"BOOKING_CONFLICT", "RESOURCE_CONFLICT", "BOOKING_UNAVAILABLE", "RESOURCE_ALREADY_EXISTS"}
AUTH_CODES = {"AUTH_TOKEN_EXPIRED", "AUTH_TOKEN_INVALID", "AUTH_INVALID_CREDENTIALS"}


def _unwrap_list(body: Any, *keys: str) -> list[Any]:
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", *keys):
            value = body.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                return _unwrap_list(value, *keys)
    raise ServerError("Unexpected response shape: expected a list", payload=body)


def _unwrap_record(body: Any) -> dict[str, Any]:
    if isinstance(body, dict):
        nested = body.get("data")
        if isinstance(nested, dict):
            return nested
        return body
    raise ServerError("Unexpected response shape: expected an object", payload=body)


class HttpBookingApi(BookingApiPort):
    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.BOOKING_API_BASE_URL or "").rstrip("/")
        self._api_token = api_token or settings.BOOKING_API_TOKEN
        self._logger = logging.getLogger(__name__)

        if client is None and not self._base_url:
            raise ValueError("BOOKING_API_BASE_URL is required for the HTTP booking API")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_seconds or settings.BOOKING_API_TIMEOUT_SECONDS,
        )

    async def list_services(self) -> list[Service]:
        body = await self._request("GET", "/services")
        return self._parse_items(_unwrap_list(body, "services"), ServicePayload, lambda p: p.to_entity())

    async def list_available_dates(self, service_id: str) -> list[AvailableDate]:
        body = await self._request("GET", "/availability", params={"serviceId": service_id})
        return self._parse_items(_unwrap_list(body, "dates"), AvailableDatePayload, lambda p: p.to_entity())

    async def list_time_slots(self, service_id: str, date: str) -> list[TimeSlot]:
        body = await self._request("GET", "/availability", params={"serviceId": service_id, "date": date})
        return self._parse_items(_unwrap_list(body, "timeSlots", "slots"), TimeSlotPayload, lambda p: p.to_entity())

    async def create_client(self, payload: dict[str, Any]) -> str:
        body = await self._request("POST", "/clients", json=payload)
        record = CreatedRecordPayload.model_validate(_unwrap_record(body))
        if not record.id:
            raise ServerError("No client id returned from booking API", payload=body)
        self._logger.info("Client created", extra={"client_id": record.id})
        return record.id

    async def create_booking(self, payload: dict[str, Any]) -> str:
        body = await self._request("POST", "/bookings", json=payload)
        record = CreatedRecordPayload.model_validate(_unwrap_record(body))
        reference = record.reference or record.id
        if not reference:
            raise ServerError("No booking reference returned from booking API", payload=body)
        self._logger.info("Booking created", extra={"reference": reference})
        return reference

    async def health_check(self) -> bool:
        await self._request("GET", "/health")
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise ApiTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            error = self._error_for(response, method, path)
            self._logger.error(
                "Booking API request failed",
                extra={"status": response.status_code, "path": path, "error_kind": error.kind.value},
            )
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(f"{method} {path} returned invalid JSON", status_code=response.status_code) from e

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    def _error_for(self, response: httpx.Response, method: str, path: str) -> BookingApiError:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = response.text

        code = None
        message = f"{method} {path} failed with HTTP {status}"
        details: dict[str, Any] = {}
        if isinstance(body, dict):
            error_obj = body.get("error") if isinstance(body.get("error"), dict) else body
            code = error_obj.get("code")
            message = error_obj.get("message") or message
            raw_details = error_obj.get("details") or error_obj.get("errors")
            if isinstance(raw_details, dict):
                details = raw_details
            elif isinstance(raw_details, list):
                details = {"errors": raw_details}

        kind = kind_for_status(status)
        if code in CONFLICT_CODES:
            kind = ErrorKind.CONFLICT
        elif code in AUTH_CODES:
            kind = ErrorKind.AUTH
        return _ERRORS_BY_KIND[kind](message, status_code=status, details=details, payload=body)

    def _parse_items(self, items: list[Any], model: type[BaseModel], convert: Callable[[Any], T]) -> list[T]:
        parsed: list[T] = []
        for item in items:
            try:
                parsed.append(convert(model.model_validate(item)))
            except ValidationError as e:
                self._logger.warning(
                    "Skipping malformed record",
                    extra={"model": model.__name__, "error": str(e)},
                )
                continue
        return parsed
