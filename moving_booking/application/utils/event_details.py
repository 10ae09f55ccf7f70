from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from moving_booking.domain.entities.appointment import Appointment


@dataclass(frozen=True)
class EventDetails:
    summary: str
    description: str
    location: str
    start: datetime
    end: datetime


def appointment_start(appointment: Appointment) -> datetime:
    return datetime.combine(date.fromisoformat(appointment.date), datetime.strptime(appointment.time, "%H:%M").time())


def build_event_details(appointment: Appointment, business_name: str, job_duration_hours: int = 2) -> EventDetails:
    """Calendar-facing summary of an appointment, shared by every provider."""
    start = appointment_start(appointment)
    customer = appointment.customer
    service = appointment.service_type or "Moving Service"

    lines = [
        f"Booking ID: {appointment.booking_id}",
        f"Calendar: {business_name}",
        f"Name: {customer.full_name}",
        f"Phone: {customer.phone}",
        f"Email: {customer.email}",
        "",
        f"Service: {service}",
    ]
    if appointment.pickup_address:
        lines.append(f"Pickup: {appointment.pickup_address}")
    if appointment.dropoff_address:
        lines.append(f"Destination: {appointment.dropoff_address}")
    if appointment.notes:
        lines.extend(["", "Additional Notes", appointment.notes])
    total = estimate_total(appointment)
    if total is not None:
        lines.append(f"Estimate: ${total}")

    return EventDetails(
        summary=f"{service} - {customer.full_name}",
        description="\n".join(lines),
        location=appointment.pickup_address,
        start=start,
        end=start + timedelta(hours=job_duration_hours),
    )


def estimate_total(appointment: Appointment) -> object | None:
    if not isinstance(appointment.estimate_details, dict):
        return None
    return appointment.estimate_details.get("total")


def format_time(value: str) -> str:
    """24h "HH:MM" to "h:MM AM/PM"."""
    return datetime.strptime(value, "%H:%M").strftime("%I:%M %p").lstrip("0")


def format_time_window(start: str, window_minutes: int = 60) -> str:
    """Arrival window label, e.g. "10:00 AM - 11:00 AM"."""
    end = (datetime.strptime(start, "%H:%M") + timedelta(minutes=window_minutes)).strftime("%H:%M")
    return f"{format_time(start)} - {format_time(end)}"


def format_long_date(value: str) -> str:
    """Format "2025-10-24" as "Friday, October 24, 2025"."""
    parsed = date.fromisoformat(value)
    return f"{parsed.strftime('%A, %B')} {parsed.day}, {parsed.year}"
