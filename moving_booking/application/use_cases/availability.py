from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from moving_booking.application.ports.appointment_store import AppointmentStorePort
from moving_booking.application.ports.blocked_dates import BlockedDateStorePort
from moving_booking.domain.entities.slot_rules import BusinessHours, CapacityPolicy


class SlotSequence:
    """Free slots for one date.

    Nothing is read until iteration starts, and every new iteration reads the
    store again, so a sequence held across requests never serves stale counts.
    """

    def __init__(self, calculator: "SlotAvailabilityCalculator", day: date, capacity: int | None) -> None:
        self._calculator = calculator
        self._day = day
        self._capacity = capacity

    def __iter__(self) -> Iterator[str]:
        return self._calculator._iter_free_slots(self._day, self._capacity)


class SlotAvailabilityCalculator:
    def __init__(
        self,
        store: AppointmentStorePort,
        hours: BusinessHours,
        capacity: CapacityPolicy,
        timezone: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
        blocked_dates: BlockedDateStorePort | None = None,
    ) -> None:
        self._store = store
        self._hours = hours
        self._capacity = capacity
        self._timezone = timezone
        self._clock = clock or (lambda: datetime.now(timezone))
        self._blocked_dates = blocked_dates

    def available_slots(self, day: date, crew_capacity_per_slot: int | None = None) -> SlotSequence:
        return SlotSequence(self, day, crew_capacity_per_slot)

    def slot_grid(self, day: date) -> list[str]:
        """All bookable slot starts for the date, ignoring existing bookings."""
        if not self._is_open(day):
            return []

        now = self._now()
        slots: list[str] = []
        current = datetime.combine(day, self._hours.start)
        end_time = datetime.combine(day, self._hours.end)
        step = timedelta(minutes=self._hours.slot_minutes)

        while current < end_time:
            # Slots that already started today cannot be booked
            if day != now.date() or current.time() > now.time():
                slots.append(current.strftime("%H:%M"))
            current += step

        return slots

    def is_bookable(self, day: date, slot: str, exclude_booking_id: str | None = None) -> bool:
        """Check one slot against the current store state."""
        if slot not in self.slot_grid(day):
            return False
        day_key = day.isoformat()
        booked = sum(
            1
            for a in self._store.list_by_date(day_key)
            if a.time == slot and a.booking_id != exclude_booking_id
        )
        return booked < self._capacity.capacity_for(day_key, slot)

    def _iter_free_slots(self, day: date, capacity: int | None) -> Iterator[str]:
        grid = self.slot_grid(day)
        if not grid:
            return

        day_key = day.isoformat()
        booked = Counter(a.time for a in self._store.list_by_date(day_key))
        for slot in grid:
            limit = capacity if capacity is not None else self._capacity.capacity_for(day_key, slot)
            if booked[slot] < limit:
                yield slot

    def _is_open(self, day: date) -> bool:
        today = self._now().date()
        if day < today:
            return False
        if day > today + timedelta(days=self._hours.horizon_days):
            return False
        if day.weekday() not in self._hours.working_days:
            return False
        if day in self._hours.blocked_dates:
            return False
        if self._blocked_dates is not None and day.isoformat() in self._blocked_dates.list_dates():
            return False
        return True

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(self._timezone)
        return now.replace(tzinfo=None)
