from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from moving_booking.application.exceptions import DuplicateBookingError, NotFoundError, StoreCorruptedError
from moving_booking.application.ports.appointment_store import AppointmentStorePort
from moving_booking.application.utils.state_helpers import apply_patch, sort_for_day
from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus, Customer
from moving_booking.infrastructure.store.json_file import JsonFile


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JsonAppointmentStore(AppointmentStorePort):
    """Appointments kept as one ordered JSON array, rewritten atomically on every mutation."""

    def __init__(
        self,
        data_dir: str = "./data",
        filename: str = "appointments.json",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._file = JsonFile(Path(data_dir) / filename)
        self._clock = clock

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._file.locked():
            yield

    def _load_records(self) -> list[dict[str, Any]]:
        """Load the appointment collection, empty if the file does not exist yet."""
        data = self._file.read()
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreCorruptedError(f"{self._file.path} does not hold a list of appointments")
        return data

    def _serialize(self, appointment: Appointment) -> dict[str, Any]:
        customer = appointment.customer
        return {
            "booking_id": appointment.booking_id,
            "customer": {
                "first_name": customer.first_name,
                "last_name": customer.last_name,
                "email": customer.email,
                "phone": customer.phone,
            },
            "date": appointment.date,
            "time": appointment.time,
            "service_type": appointment.service_type,
            "pickup_address": appointment.pickup_address,
            "dropoff_address": appointment.dropoff_address,
            "notes": appointment.notes,
            "estimate_details": appointment.estimate_details,
            "status": appointment.status.value,
            "external_event_ids": dict(appointment.external_event_ids),
            "sequence": appointment.sequence,
            "created_at": _iso(appointment.created_at),
            "updated_at": _iso(appointment.updated_at),
            "cancelled_at": _iso(appointment.cancelled_at),
            "rescheduled_from": appointment.rescheduled_from,
            "reminder_sent": appointment.reminder_sent,
            "reminder_sent_at": _iso(appointment.reminder_sent_at),
        }

    def _deserialize(self, data: dict[str, Any]) -> Appointment:
        customer = data.get("customer", {})
        try:
            return Appointment(
                booking_id=data["booking_id"],
                customer=Customer(
                    first_name=customer.get("first_name", ""),
                    last_name=customer.get("last_name", ""),
                    email=customer.get("email", ""),
                    phone=customer.get("phone", ""),
                ),
                date=data["date"],
                time=data["time"],
                service_type=data.get("service_type", "Moving Service"),
                pickup_address=data.get("pickup_address", ""),
                dropoff_address=data.get("dropoff_address", ""),
                notes=data.get("notes", ""),
                estimate_details=data.get("estimate_details"),
                status=AppointmentStatus(data.get("status", "pending")),
                external_event_ids=dict(data.get("external_event_ids") or {}),
                sequence=data.get("sequence", 0),
                created_at=_parse_iso(data.get("created_at")),
                updated_at=_parse_iso(data.get("updated_at")),
                cancelled_at=_parse_iso(data.get("cancelled_at")),
                rescheduled_from=data.get("rescheduled_from"),
                reminder_sent=bool(data.get("reminder_sent", False)),
                reminder_sent_at=_parse_iso(data.get("reminder_sent_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreCorruptedError(f"Invalid appointment record in {self._file.path}: {e}") from e

    def append(self, appointment: Appointment) -> Appointment:
        with self._file.locked():
            records = self._load_records()
            if any(r.get("booking_id") == appointment.booking_id for r in records):
                raise DuplicateBookingError(appointment.booking_id)

            now = self._clock()
            stored = replace(appointment, created_at=now, updated_at=now)
            records.append(self._serialize(stored))
            self._file.write(records)
            return stored

    def find(self, booking_id: str) -> Appointment:
        for record in self._load_records():
            if record.get("booking_id") == booking_id:
                return self._deserialize(record)
        raise NotFoundError(booking_id)

    def list_by_date(self, date: str) -> list[Appointment]:
        appointments = [self._deserialize(r) for r in self._load_records() if r.get("date") == date]
        return sort_for_day([a for a in appointments if a.is_active])

    def list_all(self) -> list[Appointment]:
        return [self._deserialize(r) for r in self._load_records()]

    def update(self, booking_id: str, **patch: Any) -> Appointment:
        with self._file.locked():
            records = self._load_records()
            for index, record in enumerate(records):
                if record.get("booking_id") == booking_id:
                    updated = apply_patch(self._deserialize(record), patch, self._clock())
                    records[index] = self._serialize(updated)
                    self._file.write(records)
                    return updated
        raise NotFoundError(booking_id)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)
