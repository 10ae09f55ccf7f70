from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from moving_booking.api.schemas import (
    DATE_PATTERN,
    AppointmentListSchema,
    AppointmentSchema,
    AvailableSlotsSchema,
    BlockedDateChangeSchema,
    BlockedDatesSchema,
    BookingLookupSchema,
    BookingRequestSchema,
    BookingResponseSchema,
    ReminderSummarySchema,
    SlotChangeSchema,
    StatusChangeResponseSchema,
    SyncCalendarRequestSchema,
    SyncCalendarResponseSchema,
)
from moving_booking.application.exceptions import (
    DuplicateBookingError,
    InvalidStatusTransitionError,
    NotFoundError,
    SlotUnavailableError,
)
from moving_booking.application.ports.blocked_dates import BlockedDateStorePort
from moving_booking.application.ports.pricing_catalog import PricingCatalogPort
from moving_booking.application.use_cases.booking import BookingOrchestrator, BookingOutcome, BookingRequest
from moving_booking.domain.entities.appointment import AppointmentStatus, Customer
from moving_booking.wiring.dependencies import get_blocked_date_store, get_booking_orchestrator, get_pricing_catalog


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/available-slots", response_model=AvailableSlotsSchema)
def available_slots(
    date: str = Query(..., pattern=DATE_PATTERN),
    uc: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    try:
        slots = uc.available_slots(date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AvailableSlotsSchema(date=date, slots=slots)


@router.post("/bookings", response_model=BookingResponseSchema, status_code=201)
def create_booking(
    req: BookingRequestSchema,
    uc: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    request = BookingRequest(
        customer=Customer(
            first_name=req.first_name,
            last_name=req.last_name,
            email=str(req.email),
            phone=req.phone,
        ),
        date=req.date,
        time=req.time,
        service_type=req.service_type,
        pickup_address=req.pickup_address,
        dropoff_address=req.dropoff_address,
        notes=req.notes,
        estimate_details=req.estimate_details,
        send_confirmation=req.send_confirmation,
    )
    try:
        outcome = uc.book(request)
    except SlotUnavailableError as e:
        raise HTTPException(status_code=409, detail=f"No capacity for {e.date} at {e.time}")
    except DuplicateBookingError as e:
        logger.exception("Booking id collision persisted after retry", extra={"booking_id": e.booking_id})
        raise HTTPException(status_code=500, detail="Could not allocate a booking id")

    return _booking_response(outcome)


@router.get("/bookings/{booking_id}", response_model=AppointmentSchema)
def get_booking(booking_id: str, uc: BookingOrchestrator = Depends(get_booking_orchestrator)):
    try:
        return AppointmentSchema.from_entity(uc.find(booking_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/bookings/{booking_id}/cancel", response_model=StatusChangeResponseSchema)
def cancel_booking(booking_id: str, uc: BookingOrchestrator = Depends(get_booking_orchestrator)):
    try:
        outcome = uc.cancel(booking_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StatusChangeResponseSchema(
        booking_id=outcome.appointment.booking_id,
        status=outcome.appointment.status,
        warnings=list(outcome.warnings),
    )


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingResponseSchema)
def reschedule_booking(
    booking_id: str,
    req: SlotChangeSchema,
    uc: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    try:
        outcome = uc.reschedule(booking_id, req.date, req.time)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SlotUnavailableError as e:
        raise HTTPException(status_code=409, detail=f"No capacity for {e.date} at {e.time}")
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _booking_response(outcome)


@router.post("/bookings/{booking_id}/complete", response_model=StatusChangeResponseSchema)
def complete_booking(booking_id: str, uc: BookingOrchestrator = Depends(get_booking_orchestrator)):
    try:
        appointment = uc.complete(booking_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StatusChangeResponseSchema(booking_id=appointment.booking_id, status=appointment.status)


@router.post("/booking-lookup", response_model=AppointmentSchema)
def booking_lookup(req: BookingLookupSchema, uc: BookingOrchestrator = Depends(get_booking_orchestrator)):
    try:
        return AppointmentSchema.from_entity(uc.lookup(req.booking_id, str(req.email)))
    except NotFoundError:
        raise HTTPException(
            status_code=404,
            detail="Booking not found. Please check your booking ID and email address.",
        )


@router.post("/sync-calendar", response_model=SyncCalendarResponseSchema)
def sync_calendar(
    req: SyncCalendarRequestSchema | None = None,
    uc: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    try:
        summary = uc.resync(req.booking_id if req else None)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SyncCalendarResponseSchema(
        synced=summary.synced,
        skipped=summary.skipped,
        failed=summary.failed,
        total=summary.total,
    )


@router.get("/appointments", response_model=AppointmentListSchema)
def list_appointments(
    status: AppointmentStatus | None = None,
    date: str | None = Query(None, pattern=DATE_PATTERN),
    uc: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    appointments = uc.list_appointments(status=status, day=date)
    return AppointmentListSchema(
        count=len(appointments),
        appointments=[AppointmentSchema.from_entity(a) for a in appointments],
    )


@router.get("/blocked-dates", response_model=BlockedDatesSchema)
def get_blocked_dates(blocked: BlockedDateStorePort = Depends(get_blocked_date_store)):
    return BlockedDatesSchema(dates=blocked.list_dates())


@router.post("/blocked-dates", response_model=BlockedDatesSchema)
def change_blocked_date(
    req: BlockedDateChangeSchema,
    blocked: BlockedDateStorePort = Depends(get_blocked_date_store),
):
    if req.action == "block":
        dates = blocked.block(req.date)
    else:
        dates = blocked.unblock(req.date)
    return BlockedDatesSchema(dates=dates)


@router.post("/reminders/send", response_model=ReminderSummarySchema)
def send_reminders(uc: BookingOrchestrator = Depends(get_booking_orchestrator)):
    summary = uc.send_due_reminders()
    return ReminderSummarySchema(due=summary.due, sent=summary.sent, failed=summary.failed)


@router.get("/services")
def list_services(catalog: PricingCatalogPort = Depends(get_pricing_catalog)) -> dict[str, Any]:
    return catalog.get()


@router.post("/services/invalidate")
def invalidate_services(catalog: PricingCatalogPort = Depends(get_pricing_catalog)) -> dict[str, str]:
    catalog.invalidate()
    return {"status": "ok"}


def _booking_response(outcome: BookingOutcome) -> BookingResponseSchema:
    appointment = outcome.appointment
    return BookingResponseSchema(
        booking_id=appointment.booking_id,
        status=appointment.status,
        date=appointment.date,
        time=appointment.time,
        external_event_ids=dict(appointment.external_event_ids),
        warnings=list(outcome.warnings),
    )
