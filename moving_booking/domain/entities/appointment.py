from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.completed, AppointmentStatus.cancelled)

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.pending: frozenset({AppointmentStatus.confirmed, AppointmentStatus.cancelled}),
    AppointmentStatus.confirmed: frozenset({AppointmentStatus.completed, AppointmentStatus.cancelled}),
    AppointmentStatus.completed: frozenset(),
    AppointmentStatus.cancelled: frozenset(),
}


@dataclass(frozen=True)
class Customer:
    first_name: str
    last_name: str
    email: str
    phone: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Appointment:
    booking_id: str
    customer: Customer
    date: str  # YYYY-MM-DD
    time: str  # HH:MM, 24h
    service_type: str = "Moving Service"
    pickup_address: str = ""
    dropoff_address: str = ""
    notes: str = ""
    estimate_details: dict[str, Any] | None = None
    status: AppointmentStatus = AppointmentStatus.pending
    external_event_ids: dict[str, str] = field(default_factory=dict)
    sequence: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    rescheduled_from: dict[str, str] | None = None  # {"date": ..., "time": ...}
    reminder_sent: bool = False
    reminder_sent_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status != AppointmentStatus.cancelled

    def missing_providers(self, provider_names: list[str]) -> list[str]:
        """Providers that have not acknowledged an event for this appointment."""
        return [name for name in provider_names if name not in self.external_event_ids]
