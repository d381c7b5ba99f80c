from __future__ import annotations

import threading
from typing import Any, Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vault import models  # noqa: F401
from vault.db import Base
from vault.ingestion.archive import RawArchiveWriter
from vault.ingestion.errors import NotFoundError
from vault.settings import ImportSettings


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def make_session() -> Session:
    return make_session_factory()()


def fast_settings(**overrides: Any) -> ImportSettings:
    values = {"http_retries": 1, "http_backoff_seconds": 0.0, "max_weeks": 3}
    values.update(overrides)
    return ImportSettings(**values)


class FakeFetcher:
    """Stands in for ``fetch_json``; ``handler(url, params, headers)`` returns a payload or raises."""

    def __init__(self, handler: Callable[[str, dict, dict], Any]) -> None:
        self.handler = handler
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(
        self,
        url: str,
        *,
        provider: str,
        settings: ImportSettings,
        params: dict | None = None,
        headers: dict | None = None,
        auth_message: str | None = None,
        not_found_message: str | None = None,
    ) -> Any:
        params = dict(params or {})
        headers = dict(headers or {})
        with self._lock:
            self.calls.append({"url": url, "params": params, "headers": headers})
        try:
            return self.handler(url, params, headers)
        except LookupError as exc:
            raise NotFoundError(not_found_message or f"not found: {url}", provider=provider, status=404) from exc

    def urls(self) -> list[str]:
        with self._lock:
            return [call["url"] for call in self.calls]


def recording_archive() -> tuple[RawArchiveWriter, list]:
    records: list = []
    return RawArchiveWriter(sink=records.append), records
