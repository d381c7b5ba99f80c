"""MyFantasyLeague adapter: same league id per year, API key auth."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Any, Optional

from vault.ingestion import mfl_parser
from vault.ingestion.base import ProviderAdapter, settled
from vault.ingestion.errors import (
    AuthError,
    FetchError,
    NotFoundError,
    ProviderError,
    RateLimitError,
)
from vault.ingestion.normalize import derive_rank_only
from vault.ingestion.schema import Discovery, MflApiKey, SeasonData, SeasonRef

logger = logging.getLogger(__name__)
MFL_BASE_URL = os.getenv("MFL_BASE_URL", "https://api.myfantasyleague.com").rstrip("/")
AUTH_MESSAGE = "MFL authentication failed. Check your API key."


class MflAdapter(ProviderAdapter):
    provider = "mfl"

    def __init__(self, *, current_year: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.current_year = current_year

    async def _export(
        self,
        year: int,
        league_id: str,
        export_type: str,
        credentials: Optional[MflApiKey],
        **extra: str,
    ) -> Any:
        params = {"TYPE": export_type, "L": league_id, "JSON": "1"}
        if credentials is not None and credentials.api_key:
            params["APIKEY"] = credentials.api_key
        params.update(extra)
        event_ref = f"{league_id}:{year}" + (f":{extra['W']}" if "W" in extra else "")
        payload = await self.get_json(
            f"{MFL_BASE_URL}/{year}/export",
            data_type=export_type,
            event_ref=event_ref,
            params=params,
            auth_message=AUTH_MESSAGE,
            not_found_message=f"MFL league {league_id} not found for {year}",
        )
        message = mfl_parser.error_message(payload)
        if message is not None:
            if mfl_parser.is_auth_error(message):
                raise AuthError(f"{AUTH_MESSAGE} ({message})", provider=self.provider)
            raise NotFoundError(f"MFL {export_type} {year}: {message}", provider=self.provider)
        return payload

    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        league_id = str(league_ref).strip()
        current_year = self.current_year or date.today().year
        found: list[SeasonRef] = []
        last_error: Optional[ProviderError] = None

        for year in range(current_year, self.settings.mfl_first_year - 1, -1):
            try:
                payload = await self._export(year, league_id, "league", credentials)
                parsed = mfl_parser.parse_season_ref(payload)
            except AuthError:
                raise
            except ProviderError as exc:
                last_error = exc
                parsed = None
            if parsed is None:
                # Once history has started, the first gap marks its beginning.
                if found:
                    break
                continue
            found.append(
                SeasonRef(
                    year=year,
                    ref=league_id,
                    name=parsed["name"],
                    team_count=parsed["team_count"],
                    settings=parsed["settings"],
                )
            )

        if not found:
            if isinstance(last_error, RateLimitError):
                raise last_error
            raise NotFoundError(
                "No MFL league data found. Check your league ID and API key.",
                provider=self.provider,
            )

        found.sort(key=lambda season: season.year)
        name = found[-1].name or f"MFL League {league_id}"
        logger.info("MFL discovery league=%s seasons=%s", league_id, [s.year for s in found])
        return Discovery(name=name, sport="nfl", seasons=found)

    async def _week(self, year: int, league_id: str, week: int, credentials, last_regular) -> list:
        payload = await self._export(year, league_id, "weeklyResults", credentials, W=str(week))
        return mfl_parser.parse_weekly_results(payload, week=week, last_regular=last_regular)

    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        league_id = season_ref.ref
        last_regular = mfl_parser.last_regular_week(season_ref.settings)
        standings_raw, league_raw, rosters_raw, draft_raw, txn_raw, weeks = await asyncio.gather(
            self._export(year, league_id, "leagueStandings", credentials),
            self._export(year, league_id, "league", credentials),
            self._export(year, league_id, "rosters", credentials),
            self._export(year, league_id, "draftResults", credentials),
            self._export(year, league_id, "transactions", credentials),
            self.collect_weeks(
                lambda week: self._week(year, league_id, week, credentials, last_regular),
                label="weeklyResults",
            ),
            return_exceptions=True,
        )

        if isinstance(standings_raw, AuthError):
            raise standings_raw
        if isinstance(standings_raw, BaseException):
            raise FetchError(
                f"Could not load MFL standings for {year}: {standings_raw}",
                provider=self.provider,
            )

        league_raw = settled(league_raw, None, label="league", provider=self.provider)
        rosters_raw = settled(rosters_raw, None, label="rosters", provider=self.provider)
        draft_raw = settled(draft_raw, None, label="draft results", provider=self.provider)
        txn_raw = settled(txn_raw, None, label="transactions", provider=self.provider)
        weeks = settled(weeks, {}, label="weekly results", provider=self.provider)

        rosters = mfl_parser.parse_standings(standings_raw, league_raw, rosters_raw)
        return SeasonData(
            season_year=year,
            rosters=rosters,
            matchups=weeks,
            draft_data=mfl_parser.parse_draft(draft_raw),
            transactions=mfl_parser.parse_transactions(txn_raw),
            playoff_results=derive_rank_only(rosters),
            settings=season_ref.settings,
        )
