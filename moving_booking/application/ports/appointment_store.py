from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

from moving_booking.domain.entities.appointment import Appointment

PATCHABLE_FIELDS = frozenset(
    {
        "status",
        "external_event_ids",
        "date",
        "time",
        "sequence",
        "cancelled_at",
        "rescheduled_from",
        "reminder_sent",
        "reminder_sent_at",
    }
)


class AppointmentStorePort(ABC):
    @abstractmethod
    def append(self, appointment: Appointment) -> Appointment:
        """Add a new record. Raises DuplicateBookingError if the id exists."""
        raise NotImplementedError

    @abstractmethod
    def find(self, booking_id: str) -> Appointment:
        """Return the record or raise NotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def list_by_date(self, date: str) -> list[Appointment]:
        """
        Non-cancelled records for a date, ordered by time then created_at.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, booking_id: str, **patch: Any) -> Appointment:
        """
        Apply a partial mutation and refresh updated_at.
        external_event_ids entries are merged into the existing mapping.
        """
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """
        Hold the exclusive writer lock for a read-modify-write cycle.
        Store methods may be called while it is held.
        """
        raise NotImplementedError
