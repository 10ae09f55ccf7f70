from __future__ import annotations

import logging
import threading

from moving_booking.application.exceptions import SyncFailure
from moving_booking.application.ports.calendar import CalendarProviderPort
from moving_booking.domain.entities.appointment import Appointment


class MockCalendar(CalendarProviderPort):
    def __init__(self, name: str = "mock", fail: bool = False) -> None:
        self.name = name
        self._fail = fail
        self.events: dict[str, tuple[str, str, str]] = {}  # event_id -> (booking_id, date, time)
        self.delete_calls: list[str] = []
        self._created = 0
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def create_event(self, appointment: Appointment) -> str:
        self._raise_if_failing("create")
        with self._lock:
            self._created += 1
            event_id = f"{self.name}_event_{self._created}"
            self.events[event_id] = (appointment.booking_id, appointment.date, appointment.time)
        self._logger.info(
            "Mock calendar event created",
            extra={
                "provider": self.name,
                "event_id": event_id,
                "booking_id": appointment.booking_id,
                "date": appointment.date,
                "time": appointment.time,
            },
        )
        return event_id

    def update_event(self, event_id: str, appointment: Appointment) -> None:
        self._raise_if_failing("update")
        if event_id not in self.events:
            raise SyncFailure(self.name, f"unknown event {event_id}")
        self.events[event_id] = (appointment.booking_id, appointment.date, appointment.time)
        self._logger.info("Mock calendar event updated", extra={"provider": self.name, "event_id": event_id})

    def delete_event(self, event_id: str) -> None:
        self.delete_calls.append(event_id)
        self._raise_if_failing("delete")
        self.events.pop(event_id, None)
        self._logger.info("Mock calendar event cancelled", extra={"provider": self.name, "event_id": event_id})

    def _raise_if_failing(self, action: str) -> None:
        if self._fail:
            raise SyncFailure(self.name, f"{action} rejected by mock provider")
