from __future__ import annotations

import logging
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from moving_booking.application.exceptions import NotificationFailure
from moving_booking.application.ports.email_transport import EmailAttachment, EmailTransportPort, OutboundEmail
from moving_booking.application.utils.event_details import (
    build_event_details,
    estimate_total,
    format_long_date,
    format_time_window,
)
from moving_booking.application.utils.invite import build_invite
from moving_booking.domain.entities.appointment import Appointment


@dataclass(frozen=True)
class CompanyProfile:
    name: str
    email: str
    phone: str
    timezone: ZoneInfo
    sender: str | None = None
    cc: list[str] = field(default_factory=list)
    job_duration_hours: int = 2


class NotificationDispatcher:
    def __init__(self, transport: EmailTransportPort, company: CompanyProfile) -> None:
        self._transport = transport
        self._company = company
        self._logger = logging.getLogger(__name__)

    def send_confirmation(self, appointment: Appointment) -> None:
        when = f"{format_long_date(appointment.date)} at {format_time_window(appointment.time)}"
        body = self._body(
            appointment,
            intro="Your move is booked. Here are the details:",
            outro="A calendar invite is attached to this email.",
        )
        self._send(appointment, f"Booking Confirmed - {when}", body, method="REQUEST", kind="confirmation")

    def send_reschedule(self, appointment: Appointment) -> None:
        when = f"{format_long_date(appointment.date)} at {format_time_window(appointment.time)}"
        previous = appointment.rescheduled_from or {}
        intro = "Your appointment has been rescheduled."
        if previous.get("date") and previous.get("time"):
            intro += (
                f" It was previously set for {format_long_date(previous['date'])}"
                f" at {format_time_window(previous['time'])}."
            )
        body = self._body(appointment, intro=intro, outro="The attached invite replaces the previous one.")
        self._send(appointment, f"Appointment Rescheduled - {when}", body, method="REQUEST", kind="reschedule")

    def send_cancellation(self, appointment: Appointment) -> None:
        body = self._body(
            appointment,
            intro="Your appointment has been cancelled.",
            outro="If this was a mistake, reply to this email or give us a call to rebook.",
        )
        subject = f"Appointment Cancelled - {format_long_date(appointment.date)}"
        self._send(appointment, subject, body, method="CANCEL", kind="cancellation")

    def send_reminder(self, appointment: Appointment) -> None:
        """Day-before reminder; plain text, the invite was sent with the confirmation."""
        outro = "\n".join(
            [
                "Checklist:",
                "- Be ready 15 minutes early",
                "- Clear pathways for access",
                "- Boxes packed and labeled",
            ]
        )
        body = self._body(appointment, intro="Your move is scheduled for tomorrow!", outro=outro)
        subject = f"Reminder: Your move is tomorrow - Arrival window {format_time_window(appointment.time)}"
        self._send(appointment, subject, body, method=None, kind="reminder")

    def _body(self, appointment: Appointment, intro: str, outro: str) -> str:
        company = self._company
        lines = [
            f"Hi {appointment.customer.full_name},",
            "",
            intro,
            "",
            f"Booking ID: {appointment.booking_id}",
            f"Service: {appointment.service_type}",
            f"Date: {format_long_date(appointment.date)}",
            f"Arrival Window: {format_time_window(appointment.time)}",
        ]
        if appointment.pickup_address:
            lines.append(f"Pickup: {appointment.pickup_address}")
        if appointment.dropoff_address:
            lines.append(f"Dropoff: {appointment.dropoff_address}")
        total = estimate_total(appointment)
        if total is not None:
            lines.append(f"Estimated Total: ${total}")
        lines += [
            "",
            outro,
            "",
            "Questions? Contact us:",
            f"Phone: {company.phone}",
            f"Email: {company.email}",
            "",
            f"Thank you for choosing {company.name}!",
        ]
        return "\n".join(lines)

    def _send(self, appointment: Appointment, subject: str, body: str, method: str | None, kind: str) -> None:
        company = self._company
        attachments: list[EmailAttachment] = []
        if method:
            details = build_event_details(appointment, company.name, company.job_duration_hours)
            invite = build_invite(
                appointment,
                details,
                business_name=company.name,
                business_email=company.email,
                business_timezone=company.timezone,
                method=method,
            )
            attachments.append(
                EmailAttachment(
                    filename="appointment.ics",
                    content=invite,
                    content_type=f"text/calendar; method={method}",
                )
            )
        message = OutboundEmail(
            to=appointment.customer.email,
            subject=subject,
            text=body,
            sender=company.sender or f"{company.name} <{company.email}>",
            cc=list(company.cc),
            attachments=attachments,
        )

        try:
            self._transport.send(message)
        except Exception as e:
            self._logger.warning(
                "Email delivery failed",
                extra={"booking_id": appointment.booking_id, "reason": kind, "error": str(e)},
            )
            raise NotificationFailure(f"{kind} email for {appointment.booking_id} failed: {e}") from e

        self._logger.info("Email sent", extra={"booking_id": appointment.booking_id, "reason": kind})
