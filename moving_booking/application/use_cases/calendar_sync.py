from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from moving_booking.application.exceptions import SyncFailure
from moving_booking.application.ports.calendar import CalendarProviderPort
from moving_booking.domain.entities.appointment import Appointment


@dataclass
class SyncReport:
    synced: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, SyncFailure] = field(default_factory=dict)

    @property
    def completeness(self) -> str:
        """One of full, partial or none."""
        if not self.failures:
            return "full"
        if self.synced:
            return "partial"
        return "none"

    def warnings(self) -> list[str]:
        return [f"calendar sync failed for {name}: {failure}" for name, failure in self.failures.items()]


class CalendarSyncAdapter:
    def __init__(self, providers: list[CalendarProviderPort], timeout_seconds: float = 10.0) -> None:
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ValueError(f"Calendar provider names must be unique: {names}")
        self._providers = list(providers)
        self._timeout = timeout_seconds
        self._logger = logging.getLogger(__name__)

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    def create_all(self, appointment: Appointment, only: list[str] | None = None) -> SyncReport:
        """Create the event on every provider (or just `only`). Values in report.synced are event ids."""
        targets = [p for p in self._providers if only is None or p.name in only]
        return self._fan_out(
            "create",
            appointment,
            {p.name: (lambda p=p: p.create_event(appointment)) for p in targets},
        )

    def update_all(self, appointment: Appointment) -> SyncReport:
        calls = {
            p.name: (lambda p=p, event_id=appointment.external_event_ids[p.name]: p.update_event(event_id, appointment))
            for p in self._providers
            if p.name in appointment.external_event_ids
        }
        return self._fan_out("update", appointment, calls)

    def delete_all(self, appointment: Appointment) -> SyncReport:
        calls = {
            p.name: (lambda p=p, event_id=appointment.external_event_ids[p.name]: p.delete_event(event_id))
            for p in self._providers
            if p.name in appointment.external_event_ids
        }
        return self._fan_out("delete", appointment, calls)

    def _fan_out(self, action: str, appointment: Appointment, calls: dict[str, Callable[[], Any]]) -> SyncReport:
        report = SyncReport()
        if not calls:
            return report

        executor = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="calendar-sync")
        try:
            futures: dict[str, Future] = {name: executor.submit(call) for name, call in calls.items()}
            wait(futures.values(), timeout=self._timeout)

            for name, future in futures.items():
                if not future.done():
                    future.cancel()
                    report.failures[name] = SyncFailure(name, f"{action} timed out after {self._timeout}s")
                    continue
                error = future.exception()
                if error is not None:
                    report.failures[name] = error if isinstance(error, SyncFailure) else SyncFailure(name, str(error))
                    continue
                report.synced[name] = future.result()
        finally:
            # Timed-out calls are abandoned, not awaited
            executor.shutdown(wait=False, cancel_futures=True)

        for name, failure in report.failures.items():
            self._logger.error(
                "Calendar sync failed",
                extra={"booking_id": appointment.booking_id, "provider": name, "reason": action, "error": str(failure)},
            )
        for name, result in report.synced.items():
            self._logger.info(
                "Calendar sync succeeded",
                extra={"booking_id": appointment.booking_id, "provider": name, "reason": action, "event_id": result},
            )
        return report
