from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any


class PeriodicTask:
    """Runs `task` on a daemon thread right away and then every `interval_seconds`."""

    def __init__(self, name: str, interval_seconds: float, task: Callable[[], Any]) -> None:
        self.name = name
        self._interval = interval_seconds
        self._task = task
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = logging.getLogger(__name__)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._logger.info("Periodic task started", extra={"reason": self.name})

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._logger.info("Periodic task stopped", extra={"reason": self.name})

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._task()
            except Exception as e:
                # One failed pass must not end the loop
                self._logger.exception("Periodic task failed", extra={"reason": self.name, "error": str(e)})
            if self._stop.wait(self._interval):
                break
