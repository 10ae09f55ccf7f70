from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time


@dataclass(frozen=True)
class BusinessHours:
    start: time = time(8, 0)
    end: time = time(18, 0)  # exclusive
    slot_minutes: int = 30
    working_days: frozenset[int] = frozenset({0, 1, 2, 3, 4, 5})  # Mon-Sat
    blocked_dates: frozenset[date] = frozenset()
    horizon_days: int = 180


@dataclass(frozen=True)
class CapacityPolicy:
    """Crew capacity per slot.

    Override keys are matched most specific first: ``"YYYY-MM-DD HH:MM"``,
    then ``"YYYY-MM-DD"``, then ``"HH:MM"``; anything else gets ``default``.
    """

    default: int = 1
    overrides: dict[str, int] = field(default_factory=dict)

    def capacity_for(self, day: str, slot: str) -> int:
        for key in (f"{day} {slot}", day, slot):
            if key in self.overrides:
                return self.overrides[key]
        return self.default
