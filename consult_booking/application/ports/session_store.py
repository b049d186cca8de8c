from abc import ABC, abstractmethod

from consult_booking.application.use_cases.booking_flow import BookingFlow


class SessionStorePort(ABC):
    @abstractmethod
    def create(self) -> BookingFlow:
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> BookingFlow | None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError
