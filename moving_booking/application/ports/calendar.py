from __future__ import annotations

from abc import ABC, abstractmethod

from moving_booking.domain.entities.appointment import Appointment


class CalendarProviderPort(ABC):
    name: str

    @abstractmethod
    def create_event(self, appointment: Appointment) -> str:
        """Create calendar event. Returns the provider's event id."""
        raise NotImplementedError

    @abstractmethod
    def update_event(self, event_id: str, appointment: Appointment) -> None:
        """Replace the event's details with the appointment's current state."""
        raise NotImplementedError

    @abstractmethod
    def delete_event(self, event_id: str) -> None:
        """Delete calendar event. Raises on failure."""
        raise NotImplementedError
