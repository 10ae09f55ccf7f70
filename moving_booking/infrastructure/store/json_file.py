from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from filelock import FileLock

from moving_booking.application.exceptions import StoreCorruptedError


class JsonFile:
    """
    One JSON document shared by every process that points at the same path.

    `locked()` holds a thread lock plus an OS-level lock on `<file>.lock`;
    both are re-entrant, so reads and writes can nest inside it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._file_lock = FileLock(f"{path}.lock")
        self._logger = logging.getLogger(__name__)

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock, self._file_lock:
            yield

    def read(self) -> Any | None:
        """Parsed content, or None if the file does not exist yet."""
        with self.locked():
            if not self.path.exists():
                return None
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                self._logger.error("Data file unreadable", extra={"reason": str(self.path), "error": str(e)})
                raise StoreCorruptedError(f"Cannot read {self.path}: {e}") from e

    def write(self, data: Any) -> None:
        """Replace the file atomically through a temp file of our own."""
        with self.locked():
            fd, temp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            temp_path = Path(temp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                temp_path.replace(self.path)
            except Exception:
                temp_path.unlink(missing_ok=True)
                raise
