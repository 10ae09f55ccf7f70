"""
Tests for durable appointment persistence.
"""

from __future__ import annotations

import json
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from moving_booking.application.exceptions import (
    DuplicateBookingError,
    InvalidStatusTransitionError,
    NotFoundError,
    StoreCorruptedError,
)
from moving_booking.domain.entities.appointment import Appointment, AppointmentStatus, Customer
from moving_booking.infrastructure.store.json_store import JsonAppointmentStore
from moving_booking.infrastructure.store.memory_store import MemoryAppointmentStore


class TickingClock:
    def __init__(self) -> None:
        self._now = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


def _appointment(booking_id: str, date: str = "2025-10-24", time: str = "10:00", email: str = "jane@example.com"):
    return Appointment(
        booking_id=booking_id,
        customer=Customer(first_name="Jane", last_name="Doe", email=email, phone="330-555-0100"),
        date=date,
        time=time,
        pickup_address="12 Oak St, Akron OH",
        dropoff_address="48 Elm Ave, Kent OH",
        estimate_details={"total": 450},
        status=AppointmentStatus.confirmed,
    )


def test_json_store_append_and_find():
    """Test that an appended appointment comes back with timestamps set."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonAppointmentStore(data_dir=tmpdir, clock=TickingClock())

        stored = store.append(_appointment("WF-1"))
        found = store.find("WF-1")

        assert found.booking_id == "WF-1"
        assert found.customer.full_name == "Jane Doe"
        assert found.estimate_details == {"total": 450}
        assert found.status == AppointmentStatus.confirmed
        assert found.created_at == stored.created_at
        assert found.created_at is not None


def test_json_store_survives_restart():
    """Test that a new store instance on the same directory sees earlier writes."""
    with tempfile.TemporaryDirectory() as tmpdir:
        JsonAppointmentStore(data_dir=tmpdir).append(_appointment("WF-1"))

        reopened = JsonAppointmentStore(data_dir=tmpdir)

        assert [a.booking_id for a in reopened.list_all()] == ["WF-1"]
        data = json.loads((Path(tmpdir) / "appointments.json").read_text(encoding="utf-8"))
        assert data[0]["customer"]["email"] == "jane@example.com"
        assert list(Path(tmpdir).glob("*.tmp")) == []


def test_json_store_rejects_duplicate_id():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonAppointmentStore(data_dir=tmpdir)
        store.append(_appointment("WF-1"))

        with pytest.raises(DuplicateBookingError):
            store.append(_appointment("WF-1", time="11:00"))

        assert len(store.list_all()) == 1


def test_find_unknown_id_raises_not_found():
    with tempfile.TemporaryDirectory() as tmpdir:
        for store in (JsonAppointmentStore(data_dir=tmpdir), MemoryAppointmentStore()):
            with pytest.raises(NotFoundError):
                store.find("WF-missing")
            with pytest.raises(NotFoundError):
                store.update("WF-missing", status=AppointmentStatus.cancelled)


def test_list_by_date_orders_by_time_then_creation():
    """Test that the day's list is ordered by slot and skips other dates and cancellations."""
    with tempfile.TemporaryDirectory() as tmpdir:
        for store in (JsonAppointmentStore(data_dir=tmpdir, clock=TickingClock()), MemoryAppointmentStore(clock=TickingClock())):
            store.append(_appointment("WF-c", time="14:00"))
            store.append(_appointment("WF-a", time="10:00"))
            store.append(_appointment("WF-b", time="10:00", email="bob@example.com"))
            store.append(_appointment("WF-other", date="2025-10-25"))
            store.append(_appointment("WF-gone", time="09:00"))
            store.update("WF-gone", status=AppointmentStatus.cancelled)

            day = store.list_by_date("2025-10-24")

            assert [a.booking_id for a in day] == ["WF-a", "WF-b", "WF-c"]


def test_update_merges_external_event_ids():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonAppointmentStore(data_dir=tmpdir, clock=TickingClock())
        created = store.append(_appointment("WF-1"))

        store.update("WF-1", external_event_ids={"google:primary": "g-1"})
        updated = store.update("WF-1", external_event_ids={"icloud": "ic-1"})

        assert updated.external_event_ids == {"google:primary": "g-1", "icloud": "ic-1"}
        assert updated.updated_at > created.updated_at
        assert store.find("WF-1").external_event_ids == {"google:primary": "g-1", "icloud": "ic-1"}


def test_update_rejects_backward_status_transition():
    for store in (MemoryAppointmentStore(),):
        store.append(_appointment("WF-1"))
        store.update("WF-1", status=AppointmentStatus.completed)

        with pytest.raises(InvalidStatusTransitionError):
            store.update("WF-1", status=AppointmentStatus.confirmed)
        with pytest.raises(InvalidStatusTransitionError):
            store.update("WF-1", status=AppointmentStatus.cancelled)

        assert store.find("WF-1").status == AppointmentStatus.completed


def test_update_rejects_unknown_fields():
    store = MemoryAppointmentStore()
    store.append(_appointment("WF-1"))

    with pytest.raises(ValueError):
        store.update("WF-1", booking_id="WF-2")


def test_corrupted_file_is_reported_not_reset():
    """Test that an unreadable collection raises instead of being silently emptied."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "appointments.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonAppointmentStore(data_dir=tmpdir)

        with pytest.raises(StoreCorruptedError):
            store.list_all()
        with pytest.raises(StoreCorruptedError):
            store.append(_appointment("WF-1"))

        assert path.read_text(encoding="utf-8") == "{not json"


def test_non_list_payload_is_corrupted():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "appointments.json").write_text('{"WF-1": {}}', encoding="utf-8")

        with pytest.raises(StoreCorruptedError):
            JsonAppointmentStore(data_dir=tmpdir).list_by_date("2025-10-24")


def test_separate_store_instances_do_not_lose_appends():
    """Test that writers sharing one data directory through different instances all land on disk."""
    with tempfile.TemporaryDirectory() as tmpdir:
        stores = [JsonAppointmentStore(data_dir=tmpdir) for _ in range(8)]
        barrier = threading.Barrier(len(stores))
        errors: list[Exception] = []

        def write(n: int) -> None:
            barrier.wait()
            try:
                for i in range(5):
                    stores[n].append(_appointment(f"WF-{n}-{i}", email=f"c{n}@example.com"))
                    stores[n].update(f"WF-{n}-{i}", external_event_ids={"mock": f"evt-{n}-{i}"})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=write, args=(n,)) for n in range(len(stores))]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        reopened = JsonAppointmentStore(data_dir=tmpdir).list_all()
        assert errors == []
        assert len(reopened) == 40
        assert all(a.external_event_ids for a in reopened)
        assert list(Path(tmpdir).glob("*.tmp")) == []


def test_transaction_excludes_other_instances():
    with tempfile.TemporaryDirectory() as tmpdir:
        first = JsonAppointmentStore(data_dir=tmpdir)
        second = JsonAppointmentStore(data_dir=tmpdir)
        appended = threading.Event()

        def append_from_second() -> None:
            second.append(_appointment("WF-2"))
            appended.set()

        with first.transaction():
            worker = threading.Thread(target=append_from_second)
            worker.start()
            assert not appended.wait(0.3)
            first.append(_appointment("WF-1"))

        worker.join(5)
        assert appended.is_set()
        assert [a.booking_id for a in first.list_all()] == ["WF-1", "WF-2"]


def test_malformed_timestamp_is_corruption():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonAppointmentStore(data_dir=tmpdir)
        store.append(_appointment("WF-1"))
        path = Path(tmpdir) / "appointments.json"
        records = json.loads(path.read_text(encoding="utf-8"))
        records[0]["created_at"] = "yesterday-ish"
        path.write_text(json.dumps(records), encoding="utf-8")

        with pytest.raises(StoreCorruptedError):
            store.find("WF-1")
        with pytest.raises(StoreCorruptedError):
            store.list_by_date("2025-10-24")


def test_reminder_flags_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonAppointmentStore(data_dir=tmpdir)
        store.append(_appointment("WF-1"))
        sent_at = datetime(2025, 10, 23, 14, 0, tzinfo=timezone.utc)

        store.update("WF-1", reminder_sent=True, reminder_sent_at=sent_at)
        found = JsonAppointmentStore(data_dir=tmpdir).find("WF-1")

        assert found.reminder_sent is True
        assert found.reminder_sent_at == sent_at
