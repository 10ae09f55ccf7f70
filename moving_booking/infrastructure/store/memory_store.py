from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from moving_booking.application.exceptions import DuplicateBookingError, NotFoundError
from moving_booking.application.ports.appointment_store import AppointmentStorePort
from moving_booking.application.utils.state_helpers import apply_patch, sort_for_day
from moving_booking.domain.entities.appointment import Appointment


class MemoryAppointmentStore(AppointmentStorePort):
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._appointments: dict[str, Appointment] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def append(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.booking_id in self._appointments:
                raise DuplicateBookingError(appointment.booking_id)
            now = self._clock()
            stored = replace(appointment, created_at=now, updated_at=now)
            self._appointments[stored.booking_id] = stored
            return stored

    def find(self, booking_id: str) -> Appointment:
        with self._lock:
            appointment = self._appointments.get(booking_id)
        if appointment is None:
            raise NotFoundError(booking_id)
        return appointment

    def list_by_date(self, date: str) -> list[Appointment]:
        with self._lock:
            matches = [a for a in self._appointments.values() if a.date == date and a.is_active]
        return sort_for_day(matches)

    def list_all(self) -> list[Appointment]:
        with self._lock:
            return list(self._appointments.values())

    def update(self, booking_id: str, **patch: Any) -> Appointment:
        with self._lock:
            current = self._appointments.get(booking_id)
            if current is None:
                raise NotFoundError(booking_id)
            updated = apply_patch(current, patch, self._clock())
            self._appointments[booking_id] = updated
            return updated
