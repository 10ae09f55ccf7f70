from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from moving_booking.application.ports.pricing_catalog import PricingCatalogPort


class PricingCatalogCache(PricingCatalogPort):
    """Rate tables read from a JSON file and kept for at most `refresh_seconds`."""

    def __init__(
        self,
        path: str,
        refresh_seconds: int = 300,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._path = Path(path)
        self._refresh_seconds = refresh_seconds
        self._monotonic = monotonic
        self._data: dict[str, Any] | None = None
        self._loaded_at: float | None = None
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def get(self) -> dict[str, Any]:
        with self._lock:
            if self._is_stale():
                self._data = self._load()
                self._loaded_at = self._monotonic()
            return dict(self._data or {})

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None
        self._logger.info("Pricing catalog invalidated")

    def _is_stale(self) -> bool:
        if self._data is None or self._loaded_at is None:
            return True
        return self._monotonic() - self._loaded_at >= self._refresh_seconds

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            self._logger.warning("Pricing catalog file missing", extra={"reason": str(self._path)})
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._logger.info("Pricing catalog loaded", extra={"reason": str(self._path)})
        return data if isinstance(data, dict) else {"services": data}
