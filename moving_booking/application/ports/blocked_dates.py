from __future__ import annotations

from abc import ABC, abstractmethod


class BlockedDateStorePort(ABC):
    """Dates closed for booking at runtime, on top of the configured ones."""

    @abstractmethod
    def list_dates(self) -> list[str]:
        """Sorted "YYYY-MM-DD" strings."""
        raise NotImplementedError

    @abstractmethod
    def block(self, date: str) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def unblock(self, date: str) -> list[str]:
        raise NotImplementedError
