from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from icalendar import Calendar, Event, vCalAddress, vText

from moving_booking.application.utils.event_details import EventDetails
from moving_booking.domain.entities.appointment import Appointment


def event_uid(booking_id: str, domain: str) -> str:
    """Stable UID so later invites for the same booking replace the first one."""
    return f"{booking_id}@{domain}"


def build_invite(
    appointment: Appointment,
    details: EventDetails,
    *,
    business_name: str,
    business_email: str,
    business_timezone: ZoneInfo,
    method: str | None = "REQUEST",
    now: datetime | None = None,
) -> bytes:
    """
    Render an iCalendar (RFC 5545) document for one appointment.

    method=None produces a plain calendar resource (used for CalDAV storage);
    "REQUEST" and "CANCEL" produce email invites. A cancelled appointment is
    rendered with STATUS:CANCELLED.
    """
    cal = Calendar()
    cal.add("prodid", f"-//{business_name}//Booking System//EN")
    cal.add("version", "2.0")
    if method:
        cal.add("method", method)

    domain = business_email.split("@")[-1] if "@" in business_email else "booking.local"
    event = Event()
    event.add("uid", event_uid(appointment.booking_id, domain))
    event.add("dtstamp", now or datetime.now(timezone.utc))
    event.add("dtstart", _to_utc(details.start, business_timezone))
    event.add("dtend", _to_utc(details.end, business_timezone))
    event.add("summary", details.summary)
    event.add("description", details.description)
    if details.location:
        event.add("location", details.location)
    event.add("sequence", appointment.sequence)
    event.add("status", "CANCELLED" if method == "CANCEL" or not appointment.is_active else "CONFIRMED")

    organizer = vCalAddress(f"mailto:{business_email}")
    organizer.params["cn"] = vText(business_name)
    event["organizer"] = organizer

    attendee = vCalAddress(f"mailto:{appointment.customer.email}")
    attendee.params["cn"] = vText(appointment.customer.full_name)
    attendee.params["role"] = vText("REQ-PARTICIPANT")
    event.add("attendee", attendee, encode=0)

    cal.add_component(event)
    return cal.to_ical()


def _to_utc(value: datetime, tz: ZoneInfo) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)
