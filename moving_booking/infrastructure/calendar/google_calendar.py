from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from moving_booking.application.exceptions import SyncFailure
from moving_booking.application.ports.calendar import CalendarProviderPort
from moving_booking.application.utils.event_details import build_event_details
from moving_booking.core.config import settings
from moving_booking.domain.entities.appointment import Appointment


class GoogleCalendar(CalendarProviderPort):
    """Google Calendar v3 events API. The OAuth access token is obtained out of band."""

    def __init__(
        self,
        calendar_id: str,
        access_token: str | None = None,
        base_url: str | None = None,
        name: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.name = name or f"google:{calendar_id}"
        self._calendar_id = calendar_id
        self._access_token = access_token or settings.GOOGLE_CALENDAR_ACCESS_TOKEN
        self._base_url = (base_url or settings.GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=timeout or settings.CALENDAR_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

        if not self._access_token:
            raise ValueError("GOOGLE_CALENDAR_ACCESS_TOKEN is required for Google Calendar")

    def create_event(self, appointment: Appointment) -> str:
        try:
            response = self._client.post(
                self._events_url(),
                params={"sendUpdates": "none"},
                json=self._event_body(appointment),
                headers=self._headers(),
            )
            response.raise_for_status()

            event_id = response.json().get("id")
            if not event_id:
                raise ValueError("No event ID returned from Google Calendar API")

            self._logger.info(
                "Calendar event created",
                extra={"provider": self.name, "booking_id": appointment.booking_id, "event_id": event_id},
            )
            return str(event_id)
        except Exception as e:
            self._logger.error("Error creating calendar event", extra={"provider": self.name, "error": str(e)})
            raise SyncFailure(self.name, f"create failed: {e}") from e

    def update_event(self, event_id: str, appointment: Appointment) -> None:
        try:
            response = self._client.patch(
                f"{self._events_url()}/{quote(event_id, safe='')}",
                params={"sendUpdates": "none"},
                json=self._event_body(appointment),
                headers=self._headers(),
            )
            response.raise_for_status()
            self._logger.info("Calendar event updated", extra={"provider": self.name, "event_id": event_id})
        except Exception as e:
            self._logger.error("Error updating calendar event", extra={"provider": self.name, "error": str(e)})
            raise SyncFailure(self.name, f"update failed: {e}") from e

    def delete_event(self, event_id: str) -> None:
        try:
            response = self._client.delete(
                f"{self._events_url()}/{quote(event_id, safe='')}",
                headers=self._headers(),
            )
            # Already deleted on the calendar side
            if response.status_code in (404, 410):
                self._logger.info("Calendar event already gone", extra={"provider": self.name, "event_id": event_id})
                return
            response.raise_for_status()
            self._logger.info("Calendar event deleted", extra={"provider": self.name, "event_id": event_id})
        except Exception as e:
            self._logger.error("Error deleting calendar event", extra={"provider": self.name, "error": str(e)})
            raise SyncFailure(self.name, f"delete failed: {e}") from e

    def _events_url(self) -> str:
        return f"{self._base_url}/calendars/{quote(self._calendar_id, safe='')}/events"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}", "Content-Type": "application/json"}

    def _event_body(self, appointment: Appointment) -> dict[str, Any]:
        details = build_event_details(appointment, settings.BUSINESS_NAME, settings.JOB_DURATION_HOURS)
        tz = settings.BUSINESS_TIMEZONE
        return {
            "summary": details.summary,
            "description": details.description,
            "location": details.location,
            "start": {"dateTime": details.start.isoformat(), "timeZone": tz},
            "end": {"dateTime": details.end.isoformat(), "timeZone": tz},
            "extendedProperties": {"private": {"bookingId": appointment.booking_id}},
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }
