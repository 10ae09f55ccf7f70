from __future__ import annotations

from dataclasses import replace
from zoneinfo import ZoneInfo

import pytest
from icalendar import Calendar

from moving_booking.application.exceptions import NotificationFailure
from moving_booking.application.ports.email_transport import EmailTransportPort, OutboundEmail
from moving_booking.application.use_cases.notifications import CompanyProfile, NotificationDispatcher
from moving_booking.application.utils.event_details import format_long_date, format_time, format_time_window
from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus, Customer
from moving_booking.infrastructure.email.mock_transport import MockEmailTransport
from moving_booking.infrastructure.email.smtp_transport import build_mime_message


class BrokenTransport(EmailTransportPort):
    def send(self, message: OutboundEmail) -> None:
        raise ConnectionRefusedError("smtp down")


COMPANY = CompanyProfile(
    name="Worry Free Moving",
    email="service@worryfreemovers.com",
    phone="330-435-8686",
    timezone=ZoneInfo("America/New_York"),
    cc=["dispatch@worryfreemovers.com"],
)


def _appointment() -> Appointment:
    return Appointment(
        booking_id="WF-1",
        customer=Customer(first_name="Jane", last_name="Doe", email="jane@example.com", phone="3305550100"),
        date="2025-10-24",
        time="14:00",
        pickup_address="12 Oak St, Akron OH",
        estimate_details={"total": 450},
        status=AppointmentStatus.confirmed,
    )


def _invite(message: OutboundEmail) -> Calendar:
    [attachment] = message.attachments
    return Calendar.from_ical(attachment.content)


def test_time_labels():
    assert format_time("14:00") == "2:00 PM"
    assert format_time("08:30") == "8:30 AM"
    assert format_time_window("10:00") == "10:00 AM - 11:00 AM"
    assert format_long_date("2025-10-24") == "Friday, October 24, 2025"


def test_confirmation_carries_request_invite():
    transport = MockEmailTransport()
    NotificationDispatcher(transport, COMPANY).send_confirmation(_appointment())

    [message] = transport.sent
    assert message.to == "jane@example.com"
    assert message.cc == ["dispatch@worryfreemovers.com"]
    assert message.subject == "Booking Confirmed - Friday, October 24, 2025 at 2:00 PM - 3:00 PM"
    assert "Booking ID: WF-1" in message.text
    assert "Estimated Total: $450" in message.text
    assert message.attachments[0].filename == "appointment.ics"
    assert message.attachments[0].content_type == "text/calendar; method=REQUEST"

    cal = _invite(message)
    [event] = cal.walk("VEVENT")
    assert str(cal["method"]) == "REQUEST"
    assert str(event["uid"]) == "WF-1@worryfreemovers.com"
    assert str(event["status"]) == "CONFIRMED"
    assert str(event["summary"]) == "Moving Service - Jane Doe"
    # 14:00 in New York during daylight time is 18:00 UTC
    assert event.decoded("dtstart").hour == 18


def test_cancellation_reuses_uid_with_cancel_method():
    transport = MockEmailTransport()
    dispatcher = NotificationDispatcher(transport, COMPANY)
    appointment = _appointment()

    dispatcher.send_confirmation(appointment)
    dispatcher.send_cancellation(replace(appointment, status=AppointmentStatus.cancelled, sequence=1))

    confirmation, cancellation = (_invite(m) for m in transport.sent)
    [first] = confirmation.walk("VEVENT")
    [second] = cancellation.walk("VEVENT")
    assert str(cancellation["method"]) == "CANCEL"
    assert str(second["status"]) == "CANCELLED"
    assert str(first["uid"]) == str(second["uid"])
    assert int(second["sequence"]) > int(first["sequence"])
    assert transport.sent[1].subject == "Appointment Cancelled - Friday, October 24, 2025"


def test_reschedule_mentions_previous_slot():
    transport = MockEmailTransport()
    moved = replace(
        _appointment(),
        date="2025-10-25",
        time="09:00",
        sequence=1,
        rescheduled_from={"date": "2025-10-24", "time": "14:00"},
    )

    NotificationDispatcher(transport, COMPANY).send_reschedule(moved)

    [message] = transport.sent
    assert message.subject.startswith("Appointment Rescheduled - Saturday, October 25, 2025")
    assert "previously set for Friday, October 24, 2025 at 2:00 PM - 3:00 PM" in message.text


def test_transport_failure_raises_notification_failure(caplog):
    dispatcher = NotificationDispatcher(BrokenTransport(), COMPANY)

    with caplog.at_level("WARNING"):
        with pytest.raises(NotificationFailure):
            dispatcher.send_confirmation(_appointment())

    assert any(getattr(r, "booking_id", None) == "WF-1" for r in caplog.records)


def test_mime_message_attaches_calendar_part():
    transport = MockEmailTransport()
    NotificationDispatcher(transport, COMPANY).send_confirmation(_appointment())

    msg = build_mime_message(transport.sent[0])

    assert msg["Cc"] == "dispatch@worryfreemovers.com"
    [part] = list(msg.iter_attachments())
    assert part.get_content_type() == "text/calendar"
    assert part.get_param("method") == "REQUEST"
    assert part.get_filename() == "appointment.ics"


def test_reminder_has_checklist_and_no_invite():
    transport = MockEmailTransport()
    NotificationDispatcher(transport, COMPANY).send_reminder(_appointment())

    [message] = transport.sent
    assert message.to == "jane@example.com"
    assert message.subject == "Reminder: Your move is tomorrow - Arrival window 2:00 PM - 3:00 PM"
    assert "Booking ID: WF-1" in message.text
    assert "Checklist:" in message.text
    assert "- Boxes packed and labeled" in message.text
    assert message.attachments == []


def test_reminder_failure_is_reported():
    with pytest.raises(NotificationFailure, match="reminder email"):
        NotificationDispatcher(BrokenTransport(), COMPANY).send_reminder(_appointment())
