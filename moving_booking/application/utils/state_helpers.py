from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any

from moving_booking.application.exceptions import InvalidStatusTransitionError
from moving_booking.application.ports.appointment_store import PATCHABLE_FIELDS
from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus


def apply_patch(appointment: Appointment, patch: dict[str, Any], now: datetime) -> Appointment:
    """Return a copy of the appointment with the patch applied and updated_at refreshed."""
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not patchable: {', '.join(sorted(unknown))}")

    changes = dict(patch)

    if "status" in changes:
        target = AppointmentStatus(changes["status"])
        if target != appointment.status and not appointment.status.can_transition_to(target):
            raise InvalidStatusTransitionError(appointment.booking_id, appointment.status.value, target.value)
        changes["status"] = target

    if "external_event_ids" in changes:
        merged = dict(appointment.external_event_ids)
        merged.update(changes["external_event_ids"] or {})
        changes["external_event_ids"] = merged

    return replace(appointment, updated_at=now, **changes)


def sort_for_day(appointments: list[Appointment]) -> list[Appointment]:
    """Order by slot time, ties broken by creation time."""
    return sorted(appointments, key=lambda a: (a.time, a.created_at.timestamp() if a.created_at else 0.0))
