from __future__ import annotations

import itertools
import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from moving_booking.application.ports.email_transport import EmailTransportPort, OutboundEmail
from moving_booking.application.use_cases.availability import SlotAvailabilityCalculator
from moving_booking.application.use_cases.booking import BookingOrchestrator
from moving_booking.application.use_cases.calendar_sync import CalendarSyncAdapter
from moving_booking.application.use_cases.notifications import CompanyProfile, NotificationDispatcher
from moving_booking.domain.entities.slot_rules import BusinessHours, CapacityPolicy
from moving_booking.infrastructure.calendar.mock_calendar import MockCalendar
from moving_booking.infrastructure.email.mock_transport import MockEmailTransport
from moving_booking.infrastructure.pricing.pricing_cache import PricingCatalogCache
from moving_booking.infrastructure.store.blocked_dates_store import MemoryBlockedDateStore
from moving_booking.infrastructure.store.memory_store import MemoryAppointmentStore
from moving_booking.main import app
from moving_booking.wiring.dependencies import get_blocked_date_store, get_booking_orchestrator, get_pricing_catalog

TZ = ZoneInfo("America/New_York")

BOOKING = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@example.com",
    "phone": "330-555-0100",
    "date": "2025-10-24",
    "time": "10:00",
    "pickupAddress": "12 Oak St, Akron OH",
    "dropoffAddress": "48 Elm Ave, Kent OH",
    "estimateDetails": {"total": 450},
}


class BrokenTransport(EmailTransportPort):
    def send(self, message: OutboundEmail) -> None:
        raise ConnectionRefusedError("smtp down")


def _orchestrator(blocked, transport=None):
    ticks = itertools.count()
    store = MemoryAppointmentStore(clock=lambda: datetime(2025, 10, 2, 12, 0, tzinfo=timezone.utc) + timedelta(seconds=next(ticks)))
    return BookingOrchestrator(
        store=store,
        availability=SlotAvailabilityCalculator(
            store=store,
            hours=BusinessHours(),
            capacity=CapacityPolicy(),
            timezone=TZ,
            clock=lambda: datetime(2025, 10, 1, 9, 0, tzinfo=TZ),
            blocked_dates=blocked,
        ),
        calendar_sync=CalendarSyncAdapter([MockCalendar()]),
        notifications=NotificationDispatcher(
            transport or MockEmailTransport(),
            CompanyProfile(name="Worry Free Moving", email="service@worryfreemovers.com", phone="330-435-8686", timezone=TZ),
        ),
        # 10:30 in New York the day before the sample move
        clock=lambda: datetime(2025, 10, 23, 14, 30, tzinfo=timezone.utc),
        business_timezone=TZ,
    )


@pytest.fixture
def client():
    blocked = MemoryBlockedDateStore()
    orchestrator = _orchestrator(blocked)
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog_path = Path(tmpdir) / "services.json"
        catalog_path.write_text(json.dumps({"movers_2": {"hourly_rate": 120}}), encoding="utf-8")
        catalog = PricingCatalogCache(str(catalog_path))

        app.dependency_overrides[get_booking_orchestrator] = lambda: orchestrator
        app.dependency_overrides[get_pricing_catalog] = lambda: catalog
        app.dependency_overrides[get_blocked_date_store] = lambda: blocked
        try:
            yield TestClient(app)
        finally:
            app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_booking_and_fetch_it(client):
    response = client.post("/api/bookings", json=BOOKING)

    assert response.status_code == 201
    body = response.json()
    assert body["bookingId"].startswith("WF-")
    assert body["status"] == "confirmed"
    assert body["externalEventIds"] == {"mock": "mock_event_1"}

    fetched = client.get(f"/api/bookings/{body['bookingId']}").json()
    assert fetched["firstName"] == "Jane"
    assert fetched["time"] == "10:00"


def test_full_slot_returns_conflict(client):
    client.post("/api/bookings", json=BOOKING)

    response = client.post("/api/bookings", json={**BOOKING, "email": "other@example.com"})

    assert response.status_code == 409


def test_invalid_payload_is_rejected(client):
    assert client.post("/api/bookings", json={**BOOKING, "email": "not-an-email"}).status_code == 422
    assert client.post("/api/bookings", json={**BOOKING, "date": "2025-02-30"}).status_code == 422
    assert client.post("/api/bookings", json={**BOOKING, "time": "25:00"}).status_code == 422


def test_available_slots(client):
    client.post("/api/bookings", json=BOOKING)

    body = client.get("/api/available-slots", params={"date": "2025-10-24"}).json()

    assert body["date"] == "2025-10-24"
    assert "10:00" not in body["slots"]
    assert "10:30" in body["slots"]


def test_unknown_booking_is_404(client):
    assert client.get("/api/bookings/WF-missing").status_code == 404
    assert client.post("/api/bookings/WF-missing/cancel").status_code == 404


def test_cancel_reschedule_and_complete(client):
    booking_id = client.post("/api/bookings", json=BOOKING).json()["bookingId"]

    moved = client.post(f"/api/bookings/{booking_id}/reschedule", json={"date": "2025-10-25", "time": "09:00"})
    assert moved.status_code == 200
    assert moved.json()["date"] == "2025-10-25"

    assert client.post(f"/api/bookings/{booking_id}/complete").json()["status"] == "completed"
    assert client.post(f"/api/bookings/{booking_id}/cancel").status_code == 409


def test_cancel_twice_is_ok(client):
    booking_id = client.post("/api/bookings", json=BOOKING).json()["bookingId"]

    first = client.post(f"/api/bookings/{booking_id}/cancel")
    second = client.post(f"/api/bookings/{booking_id}/cancel")

    assert first.json() == {"bookingId": booking_id, "status": "cancelled", "warnings": []}
    assert second.status_code == 200
    assert second.json()["status"] == "cancelled"


def test_booking_lookup_checks_email(client):
    booking_id = client.post("/api/bookings", json=BOOKING).json()["bookingId"]

    found = client.post("/api/booking-lookup", json={"bookingId": booking_id, "email": "JANE@example.com"})
    wrong = client.post("/api/booking-lookup", json={"bookingId": booking_id, "email": "eve@example.com"})

    assert found.status_code == 200
    assert found.json()["bookingId"] == booking_id
    assert wrong.status_code == 404


def test_sync_calendar_without_body(client):
    client.post("/api/bookings", json=BOOKING)

    body = client.post("/api/sync-calendar").json()

    assert body == {"synced": 0, "skipped": 1, "failed": 0, "total": 1}


def test_services_catalog(client):
    assert client.get("/api/services").json() == {"movers_2": {"hourly_rate": 120}}
    assert client.post("/api/services/invalidate").json() == {"status": "ok"}


def test_every_booking_field_is_returned(client):
    full = {
        **BOOKING,
        "serviceType": "Full Service Move",
        "notes": "Piano on the second floor",
        "estimateDetails": {"total": 450, "lines": [{"item": "2 movers", "hours": 3}]},
    }
    booking_id = client.post("/api/bookings", json=full).json()["bookingId"]

    fetched = client.get(f"/api/bookings/{booking_id}").json()
    looked_up = client.post("/api/booking-lookup", json={"bookingId": booking_id, "email": full["email"]}).json()

    for body in (fetched, looked_up):
        for key in ("firstName", "lastName", "email", "phone", "date", "time", "serviceType",
                    "pickupAddress", "dropoffAddress", "notes", "estimateDetails"):
            assert body[key] == full[key], key
        assert body["createdAt"] is not None


def test_list_appointments_newest_first(client):
    first = client.post("/api/bookings", json=BOOKING).json()["bookingId"]
    second = client.post("/api/bookings", json={**BOOKING, "time": "11:00", "email": "bob@example.com"}).json()["bookingId"]
    client.post(f"/api/bookings/{first}/cancel")

    body = client.get("/api/appointments").json()
    cancelled = client.get("/api/appointments", params={"status": "cancelled"}).json()

    assert body["count"] == 2
    assert [a["bookingId"] for a in body["appointments"]] == [second, first]
    assert [a["bookingId"] for a in cancelled["appointments"]] == [first]


def test_blocked_dates_close_the_day(client):
    assert client.get("/api/blocked-dates").json() == {"dates": []}

    blocked = client.post("/api/blocked-dates", json={"date": "2025-10-24", "action": "block"})

    assert blocked.json() == {"dates": ["2025-10-24"]}
    assert client.get("/api/available-slots", params={"date": "2025-10-24"}).json()["slots"] == []
    assert client.post("/api/bookings", json=BOOKING).status_code == 409

    client.post("/api/blocked-dates", json={"date": "2025-10-24", "action": "unblock"})

    assert client.get("/api/blocked-dates").json() == {"dates": []}
    assert "10:00" in client.get("/api/available-slots", params={"date": "2025-10-24"}).json()["slots"]


def test_blocked_dates_validate_input(client):
    assert client.post("/api/blocked-dates", json={"date": "2025-02-30", "action": "block"}).status_code == 422
    assert client.post("/api/blocked-dates", json={"date": "2025-10-24", "action": "close"}).status_code == 422


def test_send_reminders(client):
    booking_id = client.post("/api/bookings", json=BOOKING).json()["bookingId"]

    first = client.post("/api/reminders/send").json()
    second = client.post("/api/reminders/send").json()

    assert first == {"due": 1, "sent": 1, "failed": 0}
    assert second == {"due": 0, "sent": 0, "failed": 0}
    fetched = client.get(f"/api/bookings/{booking_id}").json()
    assert fetched["reminderSent"] is True
    assert fetched["reminderSentAt"] is not None


def test_cancel_reports_email_failure(client):
    broken = _orchestrator(MemoryBlockedDateStore(), transport=BrokenTransport())
    app.dependency_overrides[get_booking_orchestrator] = lambda: broken
    booking_id = client.post("/api/bookings", json=BOOKING).json()["bookingId"]

    response = client.post(f"/api/bookings/{booking_id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert any("cancellation email" in w for w in response.json()["warnings"])
