from datetime import date as Date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SlotChangeSchema(CamelModel):
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)

    @field_validator("date")
    @classmethod
    def _real_date(cls, value: str) -> str:
        Date.fromisoformat(value)
        return value


class BookingRequestSchema(SlotChangeSchema):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=7)
    service_type: str = "Moving Service"
    pickup_address: str = ""
    dropoff_address: str = ""
    notes: str = ""
    estimate_details: dict[str, Any] | None = None
    send_confirmation: bool = True


class BookingResponseSchema(CamelModel):
    booking_id: str
    status: AppointmentStatus
    date: str
    time: str
    external_event_ids: dict[str, str] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


class AppointmentSchema(CamelModel):
    booking_id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    date: str
    time: str
    service_type: str
    pickup_address: str
    dropoff_address: str
    notes: str
    estimate_details: dict[str, Any] | None = None
    status: AppointmentStatus
    external_event_ids: dict[str, str] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    rescheduled_from: dict[str, str] | None = None
    reminder_sent: bool = False
    reminder_sent_at: datetime | None = None

    @classmethod
    def from_entity(cls, appointment: Appointment) -> "AppointmentSchema":
        customer = appointment.customer
        return cls(
            booking_id=appointment.booking_id,
            first_name=customer.first_name,
            last_name=customer.last_name,
            email=customer.email,
            phone=customer.phone,
            date=appointment.date,
            time=appointment.time,
            service_type=appointment.service_type,
            pickup_address=appointment.pickup_address,
            dropoff_address=appointment.dropoff_address,
            notes=appointment.notes,
            estimate_details=appointment.estimate_details,
            status=appointment.status,
            external_event_ids=dict(appointment.external_event_ids),
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
            cancelled_at=appointment.cancelled_at,
            rescheduled_from=appointment.rescheduled_from,
            reminder_sent=appointment.reminder_sent,
            reminder_sent_at=appointment.reminder_sent_at,
        )


class StatusChangeResponseSchema(CamelModel):
    booking_id: str
    status: AppointmentStatus
    warnings: list[str] = Field(default_factory=list)


class BookingLookupSchema(CamelModel):
    booking_id: str
    email: EmailStr


class AvailableSlotsSchema(CamelModel):
    date: str
    slots: list[str]


class SyncCalendarRequestSchema(CamelModel):
    booking_id: str | None = None


class SyncCalendarResponseSchema(CamelModel):
    synced: int
    skipped: int
    failed: int
    total: int


class AppointmentListSchema(CamelModel):
    count: int
    appointments: list[AppointmentSchema]


class BlockedDatesSchema(CamelModel):
    dates: list[str]


class BlockedDateChangeSchema(CamelModel):
    date: str = Field(pattern=DATE_PATTERN)
    action: Literal["block", "unblock"]

    @field_validator("date")
    @classmethod
    def _real_date(cls, value: str) -> str:
        Date.fromisoformat(value)
        return value


class ReminderSummarySchema(CamelModel):
    due: int
    sent: int
    failed: int
