"""Recent import activity kept in memory for ``GET /api/logs``.

Records logged with ``extra={"import_id": ...}`` are tagged with that job so
one import's trail can be pulled out of the shared buffer.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = "vault"


@dataclass(frozen=True)
class ActivityEntry:
    timestamp: str
    level: str
    levelno: int
    logger: str
    message: str
    import_id: Optional[int] = None


class ActivityLog(logging.Handler):
    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._entries: deque[ActivityEntry] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            import_id = getattr(record, "import_id", None)
            self._entries.append(
                ActivityEntry(
                    timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                    level=record.levelname,
                    levelno=record.levelno,
                    logger=record.name,
                    message=self.format(record),
                    import_id=int(import_id) if import_id is not None else None,
                )
            )
        except Exception:
            self.handleError(record)

    def entries(
        self,
        limit: int = 100,
        *,
        min_level: Optional[str] = None,
        import_id: Optional[int] = None,
    ) -> list[dict]:
        """Newest first, at or above ``min_level`` and for one import when given."""
        threshold = logging.getLevelName(min_level.upper()) if min_level else logging.NOTSET
        if not isinstance(threshold, int):
            raise ValueError(f"Unknown log level: {min_level}")
        picked = []
        for entry in reversed(self._entries):
            if entry.levelno < threshold:
                continue
            if import_id is not None and entry.import_id != import_id:
                continue
            picked.append(asdict(entry))
            if len(picked) >= limit:
                break
        return picked

    def clear(self) -> None:
        self._entries.clear()


_activity: ActivityLog | None = None


def activity_log() -> ActivityLog:
    global _activity
    if _activity is None:
        _activity = ActivityLog()
        _activity.setFormatter(logging.Formatter("%(message)s"))
        _activity.setLevel(logging.INFO)
    return _activity


def install_activity_log() -> ActivityLog:
    """Attach to the package logger once; every ``vault.*`` module propagates into it."""
    handler = activity_log()
    root = logging.getLogger(ROOT_LOGGER)
    if handler not in root.handlers:
        root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)
    return handler
