from __future__ import annotations

import logging
import threading
from pathlib import Path

from moving_booking.application.exceptions import StoreCorruptedError
from moving_booking.application.ports.blocked_dates import BlockedDateStorePort
from moving_booking.infrastructure.store.json_file import JsonFile


class JsonBlockedDateStore(BlockedDateStorePort):
    def __init__(self, data_dir: str = "./data", filename: str = "blocked-dates.json") -> None:
        self._file = JsonFile(Path(data_dir) / filename)
        self._logger = logging.getLogger(__name__)

    def list_dates(self) -> list[str]:
        data = self._file.read()
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(d, str) for d in data):
            raise StoreCorruptedError(f"{self._file.path} does not hold a list of dates")
        return sorted(data)

    def block(self, date: str) -> list[str]:
        with self._file.locked():
            dates = set(self.list_dates())
            dates.add(date)
            self._file.write(sorted(dates))
        self._logger.info("Date blocked", extra={"date": date})
        return sorted(dates)

    def unblock(self, date: str) -> list[str]:
        with self._file.locked():
            dates = set(self.list_dates())
            dates.discard(date)
            self._file.write(sorted(dates))
        self._logger.info("Date unblocked", extra={"date": date})
        return sorted(dates)


class MemoryBlockedDateStore(BlockedDateStorePort):
    def __init__(self, dates: list[str] | None = None) -> None:
        self._dates = set(dates or [])
        self._lock = threading.Lock()

    def list_dates(self) -> list[str]:
        with self._lock:
            return sorted(self._dates)

    def block(self, date: str) -> list[str]:
        with self._lock:
            self._dates.add(date)
            return sorted(self._dates)

    def unblock(self, date: str) -> list[str]:
        with self._lock:
            self._dates.discard(date)
            return sorted(self._dates)
