from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class PricingCatalogPort(ABC):
    @abstractmethod
    def get(self) -> dict[str, Any]:
        """Current rate tables."""
        raise NotImplementedError

    @abstractmethod
    def invalidate(self) -> None:
        """Force the next get() to reload from the source."""
        raise NotImplementedError
