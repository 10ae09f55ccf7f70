from __future__ import annotations

import logging
import uuid
from zoneinfo import ZoneInfo

import httpx

from moving_booking.application.exceptions import SyncFailure
from moving_booking.application.ports.calendar import CalendarProviderPort
from moving_booking.application.utils.event_details import build_event_details
from moving_booking.application.utils.invite import build_invite
from moving_booking.core.config import settings
from moving_booking.domain.entities.appointment import Appointment


class ICloudCalendar(CalendarProviderPort):
    """
    CalDAV calendar (iCloud or any RFC 4791 server).

    Each event is stored as one iCalendar resource ``<collection>/<uid>.ics``;
    the event id returned to callers is that uid.
    """

    def __init__(
        self,
        calendar_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        name: str = "icloud",
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.name = name
        self._calendar_url = (calendar_url or settings.ICLOUD_CALENDAR_URL or "").rstrip("/")
        username = username or settings.ICLOUD_USERNAME
        password = password or settings.ICLOUD_PASSWORD
        if not self._calendar_url or not username or not password:
            raise ValueError("ICLOUD_CALENDAR_URL, ICLOUD_USERNAME and ICLOUD_PASSWORD are required for iCloud")
        self._client = client or httpx.Client(
            auth=(username, password),
            timeout=timeout or settings.CALENDAR_TIMEOUT_SECONDS,
        )
        self._logger = logging.getLogger(__name__)

    def create_event(self, appointment: Appointment) -> str:
        event_id = uuid.uuid4().hex
        # If-None-Match keeps a uid clash from overwriting someone else's event
        self._put(event_id, appointment, {"If-None-Match": "*"}, action="create")
        self._logger.info(
            "Calendar event created",
            extra={"provider": self.name, "booking_id": appointment.booking_id, "event_id": event_id},
        )
        return event_id

    def update_event(self, event_id: str, appointment: Appointment) -> None:
        self._put(event_id, appointment, {}, action="update")
        self._logger.info("Calendar event updated", extra={"provider": self.name, "event_id": event_id})

    def delete_event(self, event_id: str) -> None:
        try:
            response = self._client.delete(self._resource_url(event_id))
            if response.status_code == 404:
                self._logger.info("Calendar event already gone", extra={"provider": self.name, "event_id": event_id})
                return
            response.raise_for_status()
            self._logger.info("Calendar event deleted", extra={"provider": self.name, "event_id": event_id})
        except Exception as e:
            self._logger.error("Error deleting calendar event", extra={"provider": self.name, "error": str(e)})
            raise SyncFailure(self.name, f"delete failed: {e}") from e

    def _put(self, event_id: str, appointment: Appointment, headers: dict[str, str], action: str) -> None:
        try:
            details = build_event_details(appointment, settings.BUSINESS_NAME, settings.JOB_DURATION_HOURS)
            body = build_invite(
                appointment,
                details,
                business_name=settings.BUSINESS_NAME,
                business_email=settings.BUSINESS_EMAIL,
                business_timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
                method=None,
            )
            response = self._client.put(
                self._resource_url(event_id),
                content=body,
                headers={"Content-Type": "text/calendar; charset=utf-8", **headers},
            )
            response.raise_for_status()
        except Exception as e:
            self._logger.error(f"Error during calendar {action}", extra={"provider": self.name, "error": str(e)})
            raise SyncFailure(self.name, f"{action} failed: {e}") from e

    def _resource_url(self, event_id: str) -> str:
        return f"{self._calendar_url}/{event_id}.ics"
