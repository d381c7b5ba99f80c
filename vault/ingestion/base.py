"""Common plumbing for provider adapters."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from vault.ingestion.archive import RawArchiveWriter
from vault.ingestion.http import fetch_json
from vault.ingestion.schema import Discovery, SeasonData, SeasonRef
from vault.settings import ImportSettings, load_settings

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Any]


def settled(value: Any, default: Any, *, label: str, provider: str) -> Any:
    """Unwrap a gather(return_exceptions=True) slot, degrading failures to ``default``."""
    if isinstance(value, BaseException):
        logger.warning("%s %s unavailable, continuing without it: %s", provider, label, value)
        return default
    return value


class ProviderAdapter(ABC):
    provider: str = ""

    def __init__(
        self,
        *,
        archive: Optional[RawArchiveWriter] = None,
        settings: Optional[ImportSettings] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self.archive = archive
        self.settings = settings or load_settings()
        self._fetcher = fetcher or fetch_json

    @abstractmethod
    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        ...

    @abstractmethod
    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        ...

    def archive_raw(
        self,
        data_type: str,
        event_ref: str,
        payload: Any,
        record_count: Optional[int] = None,
    ) -> None:
        if self.archive is None:
            return
        self.archive.submit(self.provider, data_type, event_ref, payload, record_count)

    async def get_json(
        self,
        url: str,
        *,
        data_type: str,
        event_ref: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        auth_message: Optional[str] = None,
        not_found_message: Optional[str] = None,
    ) -> Any:
        payload = await asyncio.to_thread(
            self._fetcher,
            url,
            provider=self.provider,
            settings=self.settings,
            params=params,
            headers=headers,
            auth_message=auth_message,
            not_found_message=not_found_message,
        )
        self.archive_raw(data_type, event_ref, payload)
        return payload

    async def collect_weeks(
        self,
        fetch_week: Callable[[int], Awaitable[list]],
        *,
        label: str,
    ) -> dict[int, list]:
        """Fetch weeks in order until the first empty or failing week."""
        weeks: dict[int, list] = {}
        for week in range(1, self.settings.max_weeks + 1):
            try:
                games = await fetch_week(week)
            except Exception as exc:
                logger.info("%s %s stopped at week=%s: %s", self.provider, label, week, exc)
                break
            if not games:
                break
            weeks[week] = games
        return weeks
