"""Append-only archive of raw provider responses.

Writes are dispatched as background tasks; the caller never waits on them and
a failed write is logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from vault.models import RawProviderData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawRecord:
    provider: str
    data_type: str
    event_ref: str
    payload: Any
    record_count: int | None = None
    ingested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def count_records(payload: Any) -> int | None:
    if isinstance(payload, list):
        return len(payload)
    if isinstance(payload, dict):
        return len(payload)
    return None


class RawArchiveWriter:
    def __init__(
        self,
        session_factory: Callable[[], Any] | None = None,
        *,
        sink: Callable[[RawRecord], None] | None = None,
    ) -> None:
        if session_factory is None and sink is None:
            raise ValueError("RawArchiveWriter needs a session_factory or a sink")
        self._session_factory = session_factory
        self._sink = sink
        self._pending: set[asyncio.Task] = set()

    def submit(
        self,
        provider: str,
        data_type: str,
        event_ref: str,
        payload: Any,
        record_count: int | None = None,
    ) -> None:
        record = RawRecord(
            provider=provider,
            data_type=data_type,
            event_ref=str(event_ref),
            payload=payload,
            record_count=record_count if record_count is not None else count_records(payload),
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called from a worker thread: write inline, still never raising.
            self._write_safely(record)
            return
        task = loop.create_task(asyncio.to_thread(self._write_safely, record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for pending writes (used by CLIs on shutdown and by tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _write_safely(self, record: RawRecord) -> None:
        try:
            if self._sink is not None:
                self._sink(record)
            else:
                self._write_db(record)
        except Exception:
            logger.exception(
                "Failed to archive raw %s/%s ref=%s",
                record.provider,
                record.data_type,
                record.event_ref,
            )

    def _write_db(self, record: RawRecord) -> None:
        with self._session_factory() as db:
            db.add(
                RawProviderData(
                    provider=record.provider,
                    data_type=record.data_type,
                    event_ref=record.event_ref,
                    payload=record.payload,
                    record_count=record.record_count,
                    ingested_at=record.ingested_at,
                    processed_at=None,
                )
            )
            db.commit()
