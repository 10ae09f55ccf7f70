from datetime import datetime
from functools import lru_cache, partial
import logging
from zoneinfo import ZoneInfo

from moving_booking.core.config import settings
from moving_booking.application.ports.appointment_store import AppointmentStorePort
from moving_booking.application.ports.blocked_dates import BlockedDateStorePort
from moving_booking.application.ports.calendar import CalendarProviderPort
from moving_booking.application.ports.email_transport import EmailTransportPort
from moving_booking.application.ports.pricing_catalog import PricingCatalogPort
from moving_booking.application.use_cases.availability import SlotAvailabilityCalculator
from moving_booking.application.use_cases.booking import BookingOrchestrator, generate_booking_id
from moving_booking.application.use_cases.calendar_sync import CalendarSyncAdapter
from moving_booking.application.use_cases.notifications import CompanyProfile, NotificationDispatcher
from moving_booking.domain.entities.slot_rules import BusinessHours, CapacityPolicy
from moving_booking.infrastructure.calendar.google_calendar import GoogleCalendar
from moving_booking.infrastructure.calendar.icloud_calendar import ICloudCalendar
from moving_booking.infrastructure.calendar.mock_calendar import MockCalendar
from moving_booking.infrastructure.email.mock_transport import MockEmailTransport
from moving_booking.infrastructure.email.smtp_transport import SmtpEmailTransport
from moving_booking.infrastructure.pricing.pricing_cache import PricingCatalogCache
from moving_booking.infrastructure.scheduling.periodic_task import PeriodicTask
from moving_booking.infrastructure.store.blocked_dates_store import JsonBlockedDateStore, MemoryBlockedDateStore
from moving_booking.infrastructure.store.json_store import JsonAppointmentStore
from moving_booking.infrastructure.store.memory_store import MemoryAppointmentStore


logger = logging.getLogger(__name__)


@lru_cache
def get_appointment_store() -> AppointmentStorePort:
    if settings.STORE_PROVIDER.lower() == "memory":
        return MemoryAppointmentStore()
    return JsonAppointmentStore(data_dir=settings.DATA_DIR)


@lru_cache
def get_blocked_date_store() -> BlockedDateStorePort:
    if settings.STORE_PROVIDER.lower() == "memory":
        return MemoryBlockedDateStore()
    return JsonBlockedDateStore(data_dir=settings.DATA_DIR)


def get_calendar_providers() -> list[CalendarProviderPort]:
    providers: list[CalendarProviderPort] = []
    for kind in settings.CALENDAR_PROVIDERS:
        kind = kind.strip().lower()
        try:
            if kind == "google":
                providers.extend(GoogleCalendar(calendar_id=cid) for cid in settings.GOOGLE_CALENDAR_IDS)
            elif kind == "icloud":
                providers.append(ICloudCalendar())
            elif kind == "mock":
                providers.append(MockCalendar())
            else:
                logger.warning("Unknown calendar provider", extra={"provider": kind})
        except ValueError as e:
            # Missing credentials: the provider stays off, bookings keep working
            logger.warning("Calendar provider not available", extra={"provider": kind, "error": str(e)})
    return providers


def get_email_transport() -> EmailTransportPort:
    if settings.EMAIL_TRANSPORT.lower() == "smtp":
        if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
            if settings.ENV.lower() in {"dev", "local"}:
                logger.info("Using MockEmailTransport (SMTP credentials missing, ENV=dev/local)")
                return MockEmailTransport()
            raise ValueError("SMTP_USER and SMTP_PASSWORD are required for EMAIL_TRANSPORT=smtp")
        return SmtpEmailTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )
    return MockEmailTransport()


def get_business_hours() -> BusinessHours:
    return BusinessHours(
        start=datetime.strptime(settings.BUSINESS_HOURS_START, "%H:%M").time(),
        end=datetime.strptime(settings.BUSINESS_HOURS_END, "%H:%M").time(),
        slot_minutes=settings.SLOT_MINUTES,
        working_days=frozenset(settings.WORKING_DAYS),
        blocked_dates=frozenset(settings.BLOCKED_DATES),
        horizon_days=settings.BOOKING_HORIZON_DAYS,
    )


def get_company_profile() -> CompanyProfile:
    return CompanyProfile(
        name=settings.BUSINESS_NAME,
        email=settings.BUSINESS_EMAIL,
        phone=settings.BUSINESS_PHONE,
        timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
        sender=settings.EMAIL_FROM,
        cc=list(settings.EMAIL_CC_LIST),
        job_duration_hours=settings.JOB_DURATION_HOURS,
    )


@lru_cache
def get_booking_orchestrator() -> BookingOrchestrator:
    store = get_appointment_store()
    availability = SlotAvailabilityCalculator(
        store=store,
        hours=get_business_hours(),
        capacity=CapacityPolicy(
            default=settings.DEFAULT_CREW_CAPACITY,
            overrides=dict(settings.CREW_CAPACITY_OVERRIDES),
        ),
        timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
        blocked_dates=get_blocked_date_store(),
    )
    return BookingOrchestrator(
        store=store,
        availability=availability,
        calendar_sync=CalendarSyncAdapter(get_calendar_providers(), timeout_seconds=settings.CALENDAR_TIMEOUT_SECONDS),
        notifications=NotificationDispatcher(get_email_transport(), get_company_profile()),
        id_factory=partial(generate_booking_id, settings.BOOKING_ID_PREFIX),
        business_timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
        reminder_window=(settings.REMINDER_WINDOW_START_HOURS, settings.REMINDER_WINDOW_END_HOURS),
    )


def get_reminder_task() -> PeriodicTask:
    return PeriodicTask(
        name="reminders",
        interval_seconds=settings.REMINDER_INTERVAL_SECONDS,
        task=lambda: get_booking_orchestrator().send_due_reminders(),
    )


@lru_cache
def get_pricing_catalog() -> PricingCatalogPort:
    return PricingCatalogCache(
        path=settings.PRICING_CATALOG_PATH,
        refresh_seconds=settings.PRICING_REFRESH_SECONDS,
    )
