from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from consult_booking.domain.entities.client_info import ClientInfo
from consult_booking.domain.entities.service import Service
from consult_booking.domain.entities.time_slot import AvailableDate, TimeSlot

NAME_PATTERN = r"^[A-Za-zÀ-ÖØ-öø-ÿ\s'-]+$"
PHONE_PATTERN = r"^(\+\d{1,3})?\s?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}$"
ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

CaseType = Literal[
    "investment_fraud",
    "bank_fraud",
    "credit_card_fraud",
    "identity_theft",
    "pension_scam",
    "mortgage_fraud",
    "insurance_fraud",
    "tax_fraud",
    "cryptocurrency_fraud",
    "other",
]
UrgencyLevel = Literal["low", "medium", "high", "urgent"]
ContactMethod = Literal["email", "phone", "text"]


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


def field_errors(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
        errors.append(FieldError(field=location, message=item.get("msg", "Invalid value")))
    return errors


def is_iso_date(value: str) -> bool:
    if not isinstance(value, str) or ISO_DATE_RE.fullmatch(value) is None:
        return False
    try:
        date_type.fromisoformat(value)
    except ValueError:
        return False
    return True


# --- inbound: API responses ----------------------------------------------------


class ServicePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, validation_alias=AliasChoices("_id", "id"))
    name: str = Field(min_length=1)
    price: float = 0.0
    duration_minutes: int = Field(
        default=60,
        validation_alias=AliasChoices("durationMinutes", "duration_minutes", "duration"),
    )
    category: str = "recovery"
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "is_active"))
    description: str | None = None

    def to_entity(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            price=self.price,
            duration_minutes=self.duration_minutes,
            category=self.category,
            is_active=self.is_active,
            description=self.description,
        )


class TimeSlotPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    start_time: str = Field(min_length=1, validation_alias=AliasChoices("startTime", "start_time"))
    end_time: str = Field(default="", validation_alias=AliasChoices("endTime", "end_time"))
    duration_minutes: int = Field(
        default=0,
        validation_alias=AliasChoices("durationMinutes", "duration_minutes", "duration"),
    )
    available: bool = Field(default=True, validation_alias=AliasChoices("available", "isAvailable"))

    @model_validator(mode="after")
    def _default_id(self) -> "TimeSlotPayload":
        if not self.id:
            self.id = f"{self.start_time}_{self.end_time}"
        return self

    def to_entity(self) -> TimeSlot:
        return TimeSlot(
            id=self.id or f"{self.start_time}_{self.end_time}",
            start_time=self.start_time,
            end_time=self.end_time,
            duration_minutes=self.duration_minutes,
            available=self.available,
        )


class AvailableDatePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    available: bool = Field(default=True, validation_alias=AliasChoices("available", "hasAvailability"))
    slot_count: int | None = Field(default=None, validation_alias=AliasChoices("slotCount", "slot_count"))

    def to_entity(self) -> AvailableDate:
        return AvailableDate(date=self.date, available=self.available, slot_count=self.slot_count)


class CreatedRecordPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    reference: str | None = Field(
        default=None,
        validation_alias=AliasChoices("reference", "bookingReference", "confirmationCode"),
    )

    @field_validator("id", "reference", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


# --- client-supplied data -------------------------------------------------------


class ClientInfoInput(BaseModel):
    """Boundary validation for client-supplied intake data (camelCase or snake_case keys)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    first_name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    phone: str = Field(min_length=10, pattern=PHONE_PATTERN)
    preferred_contact_method: ContactMethod = "email"
    case_type: CaseType
    estimated_loss: str = Field(min_length=1, max_length=50)
    urgency_level: UrgencyLevel = "medium"
    case_description: str = Field(min_length=10, max_length=500)
    additional_notes: str | None = Field(default=None, max_length=500)
    consent_to_contact: bool = False
    privacy_policy_accepted: bool = False
    data_processing_agreed: bool = False

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: str) -> str:
        return " ".join(value.split())

    @field_validator("additional_notes")
    @classmethod
    def _blank_notes_to_none(cls, value: str | None) -> str | None:
        return value or None

    def to_entity(self) -> ClientInfo:
        return ClientInfo(**self.model_dump())


# --- outbound: request payloads -------------------------------------------------


def build_client_payload(info: ClientInfo) -> dict[str, Any]:
    return {
        "firstName": info.first_name,
        "lastName": info.last_name,
        "email": info.email,
        "phone": info.phone,
        "preferredContactMethod": info.preferred_contact_method,
        "caseType": info.case_type,
        "estimatedLoss": info.estimated_loss,
        "urgencyLevel": info.urgency_level,
        "caseDescription": info.case_description,
        "additionalNotes": info.additional_notes,
        "consentToContact": info.consent_to_contact,
        "privacyPolicyAccepted": info.privacy_policy_accepted,
        "dataProcessingAgreed": info.data_processing_agreed,
    }


def build_booking_payload(
    client_id: str,
    service: Service,
    date: str,
    slot: TimeSlot,
    info: ClientInfo,
) -> dict[str, Any]:
    return {
        "clientId": client_id,
        "serviceId": service.id,
        "date": date,
        "timeSlot": {
            "id": slot.id,
            "startTime": slot.start_time,
            "endTime": slot.end_time,
        },
        "durationMinutes": slot.duration_minutes or service.duration_minutes,
        "caseType": info.case_type,
        "estimatedLoss": info.estimated_loss,
        "urgencyLevel": info.urgency_level,
        "caseDescription": info.case_description,
        "notes": info.additional_notes,
    }
