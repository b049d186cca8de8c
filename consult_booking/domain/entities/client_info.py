from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ClientInfo:
    first_name: str
    last_name: str
    email: str
    phone: str
    case_type: str
    estimated_loss: str
    case_description: str
    urgency_level: str = "medium"
    preferred_contact_method: str = "email"
    additional_notes: str | None = None
    consent_to_contact: bool = False
    privacy_policy_accepted: bool = False
    data_processing_agreed: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def has_all_consents(self) -> bool:
        return self.consent_to_contact and self.privacy_policy_accepted and self.data_processing_agreed
