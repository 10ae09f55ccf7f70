from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any

from moving_booking.application.exceptions import (
    DuplicateBookingError,
    InvalidStatusTransitionError,
    NotFoundError,
    NotificationFailure,
    SlotUnavailableError,
)
from moving_booking.application.ports.appointment_store import AppointmentStorePort
from moving_booking.application.use_cases.availability import SlotAvailabilityCalculator
from moving_booking.application.use_cases.calendar_sync import CalendarSyncAdapter, SyncReport
from moving_booking.application.use_cases.notifications import NotificationDispatcher
from moving_booking.application.utils.event_details import appointment_start
from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus, Customer


class BookingStage(str, Enum):
    requested = "REQUESTED"
    validated = "VALIDATED"
    persisted = "PERSISTED"
    synced = "SYNCED"
    notified = "NOTIFIED"


@dataclass(frozen=True)
class BookingRequest:
    customer: Customer
    date: str
    time: str
    service_type: str = "Moving Service"
    pickup_address: str = ""
    dropoff_address: str = ""
    notes: str = ""
    estimate_details: dict[str, Any] | None = None
    send_confirmation: bool = True


@dataclass
class BookingOutcome:
    appointment: Appointment
    stage: BookingStage
    sync: SyncReport = field(default_factory=SyncReport)
    warnings: list[str] = field(default_factory=list)
    duplicate: bool = False


@dataclass(frozen=True)
class ResyncSummary:
    synced: int
    skipped: int
    failed: int
    total: int


@dataclass(frozen=True)
class ReminderSummary:
    due: int
    sent: int
    failed: int


def generate_booking_id(prefix: str = "WF") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


class BookingOrchestrator:
    def __init__(
        self,
        store: AppointmentStorePort,
        availability: SlotAvailabilityCalculator,
        calendar_sync: CalendarSyncAdapter,
        notifications: NotificationDispatcher,
        id_factory: Callable[[], str] = generate_booking_id,
        clock: Callable[[], datetime] | None = None,
        business_timezone: tzinfo = timezone.utc,
        reminder_window: tuple[float, float] = (23.0, 25.0),
    ) -> None:
        self._store = store
        self._availability = availability
        self._calendar_sync = calendar_sync
        self._notifications = notifications
        self._id_factory = id_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._business_timezone = business_timezone
        self._reminder_window = reminder_window
        self._logger = logging.getLogger(__name__)

    def book(self, request: BookingRequest) -> BookingOutcome:
        """
        Validate, persist, sync and notify.
        Only validation and persistence can fail the booking; later stages
        degrade into warnings on the outcome.
        """
        day = _parse_date(request.date)

        # Capacity check and append share one store transaction
        with self._store.transaction():
            existing = self._find_same_customer_slot(request)
            if existing is not None:
                self._logger.info(
                    "Duplicate booking request, returning existing appointment",
                    extra={"booking_id": existing.booking_id, "date": request.date, "time": request.time},
                )
                return BookingOutcome(appointment=existing, stage=BookingStage.persisted, duplicate=True)

            if not self._availability.is_bookable(day, request.time):
                self._logger.info(
                    "Slot unavailable", extra={"date": request.date, "time": request.time}
                )
                raise SlotUnavailableError(request.date, request.time)

            appointment = self._persist(request)

        self._logger.info(
            "Appointment booked",
            extra={"booking_id": appointment.booking_id, "date": appointment.date, "time": appointment.time},
        )
        outcome = BookingOutcome(appointment=appointment, stage=BookingStage.persisted)

        outcome.sync = self._calendar_sync.create_all(appointment)
        if outcome.sync.synced:
            outcome.appointment = self._store.update(appointment.booking_id, external_event_ids=outcome.sync.synced)
        outcome.warnings.extend(outcome.sync.warnings())
        outcome.stage = BookingStage.synced

        if request.send_confirmation:
            if self._notify(self._notifications.send_confirmation, outcome.appointment, outcome.warnings):
                outcome.stage = BookingStage.notified
        else:
            self._logger.info("Confirmation email skipped", extra={"booking_id": appointment.booking_id})

        return outcome

    def cancel(self, booking_id: str) -> BookingOutcome:
        """
        Commit the cancellation first, then remove calendar events and email
        the customer. Repeating a cancel is a no-op flagged as duplicate.
        """
        with self._store.transaction():
            appointment = self._store.find(booking_id)
            if appointment.status == AppointmentStatus.cancelled:
                return BookingOutcome(appointment=appointment, stage=BookingStage.persisted, duplicate=True)
            if appointment.status.is_terminal:
                raise InvalidStatusTransitionError(
                    booking_id, appointment.status.value, AppointmentStatus.cancelled.value
                )
            cancelled = self._store.update(
                booking_id,
                status=AppointmentStatus.cancelled,
                cancelled_at=self._clock(),
                sequence=appointment.sequence + 1,
            )

        self._logger.info("Appointment cancelled", extra={"booking_id": booking_id, "status": cancelled.status.value})
        outcome = BookingOutcome(appointment=cancelled, stage=BookingStage.persisted)

        outcome.sync = self._calendar_sync.delete_all(cancelled)
        outcome.warnings.extend(outcome.sync.warnings())
        outcome.stage = BookingStage.synced

        if self._notify(self._notifications.send_cancellation, cancelled, outcome.warnings):
            outcome.stage = BookingStage.notified
        return outcome

    def reschedule(self, booking_id: str, new_date: str, new_time: str) -> BookingOutcome:
        day = _parse_date(new_date)

        with self._store.transaction():
            appointment = self._store.find(booking_id)
            if appointment.status.is_terminal:
                raise InvalidStatusTransitionError(booking_id, appointment.status.value, "rescheduled")
            if not self._availability.is_bookable(day, new_time, exclude_booking_id=booking_id):
                raise SlotUnavailableError(new_date, new_time)
            updated = self._store.update(
                booking_id,
                date=new_date,
                time=new_time,
                sequence=appointment.sequence + 1,
                rescheduled_from={"date": appointment.date, "time": appointment.time},
                reminder_sent=False,
                reminder_sent_at=None,
            )

        self._logger.info(
            "Appointment rescheduled",
            extra={"booking_id": booking_id, "date": new_date, "time": new_time},
        )
        outcome = BookingOutcome(appointment=updated, stage=BookingStage.persisted)
        outcome.sync = self._calendar_sync.update_all(updated)
        outcome.warnings.extend(outcome.sync.warnings())
        outcome.stage = BookingStage.synced
        if self._notify(self._notifications.send_reschedule, updated, outcome.warnings):
            outcome.stage = BookingStage.notified
        return outcome

    def complete(self, booking_id: str) -> Appointment:
        appointment = self._store.update(booking_id, status=AppointmentStatus.completed)
        self._logger.info("Appointment completed", extra={"booking_id": booking_id})
        return appointment

    def find(self, booking_id: str) -> Appointment:
        return self._store.find(booking_id)

    def lookup(self, booking_id: str, email: str) -> Appointment:
        """Customer-facing lookup; a wrong email is indistinguishable from a wrong id."""
        appointment = self._store.find(booking_id)
        if appointment.customer.email.strip().lower() != email.strip().lower():
            raise NotFoundError(booking_id)
        return appointment

    def list_appointments(self, status: AppointmentStatus | None = None, day: str | None = None) -> list[Appointment]:
        """Every appointment, newest booking first."""
        appointments = [
            a
            for a in self._store.list_all()
            if (status is None or a.status == status) and (day is None or a.date == day)
        ]
        return sorted(
            appointments,
            key=lambda a: a.created_at.timestamp() if a.created_at else 0.0,
            reverse=True,
        )

    def send_due_reminders(self) -> ReminderSummary:
        """
        Email confirmed appointments starting 23 to 25 hours from now, once.

        Each reminder is claimed (reminder_sent=True) before the email goes
        out and released again if delivery fails, so the next pass retries it.
        """
        now = self._clock()
        low, high = self._reminder_window
        sent = failed = 0
        due = 0

        for appointment in self._store.list_all():
            if appointment.status != AppointmentStatus.confirmed or appointment.reminder_sent:
                continue
            start = appointment_start(appointment).replace(tzinfo=self._business_timezone)
            hours_until = (start - now).total_seconds() / 3600
            if not low <= hours_until <= high:
                continue
            due += 1

            claimed = self._claim_reminder(appointment.booking_id, now)
            if claimed is None:
                continue
            try:
                self._notifications.send_reminder(claimed)
            except NotificationFailure:
                self._store.update(claimed.booking_id, reminder_sent=False, reminder_sent_at=None)
                failed += 1
                continue
            sent += 1

        self._logger.info(
            "Reminder pass finished",
            extra={"reason": f"due={due} sent={sent} failed={failed}"},
        )
        return ReminderSummary(due=due, sent=sent, failed=failed)

    def _claim_reminder(self, booking_id: str, now: datetime) -> Appointment | None:
        with self._store.transaction():
            current = self._store.find(booking_id)
            if current.status != AppointmentStatus.confirmed or current.reminder_sent:
                return None
            return self._store.update(booking_id, reminder_sent=True, reminder_sent_at=now)

    def available_slots(self, day: str) -> list[str]:
        return list(self._availability.available_slots(_parse_date(day)))

    def resync(self, booking_id: str | None = None) -> ResyncSummary:
        """Create events on providers that never acknowledged an appointment."""
        if booking_id is not None:
            candidates = [self._store.find(booking_id)]
        else:
            candidates = self._store.list_all()

        synced = skipped = failed = 0
        for appointment in candidates:
            missing = appointment.missing_providers(self._calendar_sync.provider_names)
            if appointment.status.is_terminal or not missing:
                skipped += 1
                continue

            report = self._calendar_sync.create_all(appointment, only=missing)
            if report.synced:
                self._store.update(appointment.booking_id, external_event_ids=report.synced)
            if report.failures:
                failed += 1
            else:
                synced += 1

        self._logger.info(
            "Calendar resync finished",
            extra={"reason": f"synced={synced} skipped={skipped} failed={failed}"},
        )
        return ResyncSummary(synced=synced, skipped=skipped, failed=failed, total=len(candidates))

    def _persist(self, request: BookingRequest) -> Appointment:
        # One retry with a fresh id; a second collision is surfaced
        try:
            return self._store.append(self._new_appointment(request))
        except DuplicateBookingError as e:
            self._logger.warning("Booking id collision, regenerating", extra={"booking_id": e.booking_id})
            return self._store.append(self._new_appointment(request))

    def _new_appointment(self, request: BookingRequest) -> Appointment:
        return Appointment(
            booking_id=self._id_factory(),
            customer=request.customer,
            date=request.date,
            time=request.time,
            service_type=request.service_type,
            pickup_address=request.pickup_address,
            dropoff_address=request.dropoff_address,
            notes=request.notes,
            estimate_details=request.estimate_details,
            status=AppointmentStatus.confirmed,
        )

    def _find_same_customer_slot(self, request: BookingRequest) -> Appointment | None:
        email = request.customer.email.strip().lower()
        for appointment in self._store.list_by_date(request.date):
            if appointment.time == request.time and appointment.customer.email.strip().lower() == email:
                return appointment
        return None

    def _notify(
        self,
        send: Callable[[Appointment], None],
        appointment: Appointment,
        warnings: list[str],
    ) -> bool:
        try:
            send(appointment)
            return True
        except NotificationFailure as e:
            warnings.append(str(e))
            return False


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD") from e
