"""ESPN adapter: one league id reused across seasons, checked year by year."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Any, Optional

from vault.ingestion import espn_parser
from vault.ingestion.base import ProviderAdapter, settled
from vault.ingestion.errors import (
    AuthError,
    FetchError,
    NotFoundError,
    ProviderError,
    RateLimitError,
)
from vault.ingestion.normalize import derive_tier_label
from vault.ingestion.schema import Discovery, EspnCookies, SeasonData, SeasonRef

logger = logging.getLogger(__name__)
ESPN_FANTASY_BASE_URL = os.getenv(
    "ESPN_FANTASY_BASE_URL",
    "https://lm-api-reads.fantasy.espn.com/apis/v3/games/ffl/seasons",
).rstrip("/")
AUTH_MESSAGE = "ESPN authentication failed. Check your espn_s2 and SWID cookies."


def cookie_headers(credentials: Optional[EspnCookies]) -> dict[str, str]:
    if credentials is None or not credentials.espn_s2 or not credentials.swid:
        return {}
    return {"Cookie": f"espn_s2={credentials.espn_s2}; SWID={credentials.swid}"}


class EspnAdapter(ProviderAdapter):
    provider = "espn"

    def __init__(self, *, current_year: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.current_year = current_year

    def _view(
        self,
        league_id: str,
        year: int,
        view: str,
        credentials: Optional[EspnCookies],
    ):
        return self.get_json(
            f"{ESPN_FANTASY_BASE_URL}/{year}/segments/0/leagues/{league_id}",
            data_type=view,
            event_ref=f"{league_id}:{year}",
            params={"view": view},
            headers=cookie_headers(credentials),
            auth_message=AUTH_MESSAGE,
            not_found_message=f"League not found for {year}. ESPN only stores data from 2018+.",
        )

    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        league_id = str(league_ref).strip()
        current_year = self.current_year or date.today().year
        found: list[SeasonRef] = []
        stopped_by: Optional[ProviderError] = None

        for year in range(current_year, self.settings.espn_first_year - 1, -1):
            try:
                payload = await self._view(league_id, year, "mSettings", credentials)
            except NotFoundError:
                continue
            except AuthError:
                raise
            except ProviderError as exc:
                logger.warning("ESPN discovery stopped at year=%s: %s", year, exc)
                stopped_by = exc
                break
            parsed = espn_parser.parse_season_ref(payload)
            if parsed is None:
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
            if isinstance(stopped_by, RateLimitError):
                raise stopped_by
            raise NotFoundError(
                "No ESPN league data found. Check your league ID and cookies.",
                provider=self.provider,
            )

        found.sort(key=lambda season: season.year)
        name = found[-1].name or f"ESPN League {league_id}"
        logger.info("ESPN discovery league=%s seasons=%s", league_id, [s.year for s in found])
        return Discovery(name=name, sport="nfl", seasons=found)

    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        league_id = season_ref.ref
        teams_raw, schedule_raw, draft_raw, txn_raw = await asyncio.gather(
            self._view(league_id, year, "mTeam", credentials),
            self._view(league_id, year, "mMatchup", credentials),
            self._view(league_id, year, "mDraftDetail", credentials),
            self._view(league_id, year, "mTransactions2", credentials),
            return_exceptions=True,
        )

        if isinstance(teams_raw, AuthError):
            raise teams_raw
        if isinstance(teams_raw, BaseException):
            raise FetchError(
                f"Could not load ESPN teams for {year}: {teams_raw}",
                provider=self.provider,
            )

        rosters = espn_parser.parse_teams(teams_raw)
        schedule_raw = settled(schedule_raw, None, label="schedule", provider=self.provider)
        draft_raw = settled(draft_raw, None, label="draft", provider=self.provider)
        txn_raw = settled(txn_raw, None, label="transactions", provider=self.provider)

        matchups, tier_games = espn_parser.parse_schedule(schedule_raw)
        return SeasonData(
            season_year=year,
            rosters=rosters,
            matchups=matchups,
            draft_data=espn_parser.parse_draft(draft_raw),
            transactions=espn_parser.parse_transactions(txn_raw),
            playoff_results=derive_tier_label(tier_games, [r.team_ref for r in rosters]),
            settings=season_ref.settings,
        )
