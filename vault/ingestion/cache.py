"""Time-bounded lookup table shared across imports of one provider."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TimedCache:
    """Holds one loader-built mapping and rebuilds it once ``ttl_seconds`` pass.

    A failed load leaves the previous mapping in place (or an empty one) so a
    lookup never raises.
    """

    def __init__(
        self,
        loader: Callable[[], dict[str, Any]],
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: dict[str, Any] | None = None
        self._loaded_at: float | None = None
        self._lock = threading.Lock()

    def _expired(self) -> bool:
        if self._data is None or self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self._ttl_seconds

    def _refresh(self) -> None:
        try:
            data = self._loader() or {}
        except Exception:
            logger.exception("Name cache load failed; keeping previous table")
            data = self._data or {}
        self._data = data
        self._loaded_at = self._clock()

    def warm(self) -> None:
        """Load the table now if it is missing or stale; blocks for the loader."""
        with self._lock:
            if self._expired():
                self._refresh()

    def get(self, key: Any, default: Any = None) -> Any:
        with self._lock:
            if self._expired():
                self._refresh()
            return self._data.get(str(key), default)

    def invalidate(self) -> None:
        with self._lock:
            self._data = None
            self._loaded_at = None
