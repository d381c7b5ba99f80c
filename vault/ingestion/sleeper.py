"""Sleeper adapter: leagues linked backwards through ``previous_league_id``."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

from vault.ingestion import sleeper_parser
from vault.ingestion.base import ProviderAdapter, settled
from vault.ingestion.cache import TimedCache
from vault.ingestion.errors import AuthError, FetchError, NotFoundError, ProviderError
from vault.ingestion.http import fetch_json
from vault.ingestion.normalize import derive_flagged_bracket, safe_int
from vault.ingestion.schema import Discovery, SeasonData, SeasonRef
from vault.settings import ImportSettings

logger = logging.getLogger(__name__)
SLEEPER_BASE_URL = os.getenv("SLEEPER_BASE_URL", "https://api.sleeper.app/v1").rstrip("/")


def build_player_cache(settings: ImportSettings) -> TimedCache:
    """Player-id -> player record table, reloaded once a day by default."""

    def _load() -> dict[str, Any]:
        payload = fetch_json(
            f"{SLEEPER_BASE_URL}/players/nfl",
            provider="sleeper",
            settings=settings,
        )
        return payload if isinstance(payload, dict) else {}

    return TimedCache(_load, settings.name_cache_ttl_seconds)


class SleeperAdapter(ProviderAdapter):
    provider = "sleeper"

    def __init__(self, *, name_cache: Optional[TimedCache] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.name_cache = name_cache

    async def _league(self, league_id: str) -> Any:
        return await self.get_json(
            f"{SLEEPER_BASE_URL}/league/{league_id}",
            data_type="league",
            event_ref=league_id,
            not_found_message=f"Sleeper league {league_id} not found",
        )

    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        league_id = str(league_ref).strip()
        current = await self._league(league_id)
        # Unknown ids come back as 200 with a null body.
        if not isinstance(current, dict):
            raise NotFoundError(
                f"Sleeper league {league_id} not found. Check the league ID.",
                provider=self.provider,
            )

        name = current.get("name") or f"Sleeper League {league_id}"
        sport = current.get("sport") or "nfl"
        by_year: dict[int, SeasonRef] = {}
        visited: set[str] = set()
        hops = 0
        while isinstance(current, dict):
            current_id = str(current.get("league_id") or league_id)
            visited.add(current_id)
            year = safe_int(current.get("season"))
            if year and year not in by_year:
                by_year[year] = SeasonRef(
                    year=year,
                    ref=current_id,
                    name=current.get("name"),
                    team_count=safe_int(current.get("total_rosters")) or None,
                    settings=sleeper_parser.settings_snapshot(current),
                )

            previous = current.get("previous_league_id")
            if not previous or str(previous) == "0" or str(previous) in visited:
                break
            if hops >= self.settings.sleeper_max_hops:
                logger.warning("Sleeper chain for %s truncated after %s hops", league_id, hops)
                break
            hops += 1
            try:
                current = await self._league(str(previous))
            except ProviderError as exc:
                logger.warning("Sleeper chain broken at %s: %s", previous, exc)
                break

        seasons = [by_year[year] for year in sorted(by_year)]
        logger.info("Sleeper discovery league=%s seasons=%s", league_id, [s.year for s in seasons])
        return Discovery(name=name, sport=sport, seasons=seasons)

    async def _draft(self, league_id: str) -> Optional[dict[str, Any]]:
        drafts = await self.get_json(
            f"{SLEEPER_BASE_URL}/league/{league_id}/drafts",
            data_type="drafts",
            event_ref=league_id,
        )
        if not isinstance(drafts, list) or not drafts:
            return None
        draft = drafts[0]
        draft_id = str(draft.get("draft_id"))
        picks = await self.get_json(
            f"{SLEEPER_BASE_URL}/draft/{draft_id}/picks",
            data_type="draft_picks",
            event_ref=draft_id,
        )
        return sleeper_parser.parse_draft(draft, picks if isinstance(picks, list) else [], self.name_cache)

    async def _transactions(self, league_id: str) -> list[dict[str, Any]]:
        # Quiet weeks return [], so every week is asked for.
        transactions: list[dict[str, Any]] = []
        for week in range(1, self.settings.max_weeks + 1):
            try:
                payload = await self.get_json(
                    f"{SLEEPER_BASE_URL}/league/{league_id}/transactions/{week}",
                    data_type="transactions",
                    event_ref=f"{league_id}:{week}",
                )
            except ProviderError as exc:
                logger.info("Sleeper transactions stopped at week=%s: %s", week, exc)
                break
            transactions.extend(sleeper_parser.parse_transactions(week, payload or []))
        return transactions

    async def _matchup_week(self, league_id: str, week: int) -> list:
        payload = await self.get_json(
            f"{SLEEPER_BASE_URL}/league/{league_id}/matchups/{week}",
            data_type="matchups",
            event_ref=f"{league_id}:{week}",
        )
        return payload if isinstance(payload, list) else []

    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        league_id = season_ref.ref
        base = f"{SLEEPER_BASE_URL}/league/{league_id}"
        if self.name_cache is not None:
            # The player table download is large; parsers below only read it.
            await asyncio.to_thread(self.name_cache.warm)
        rosters_raw, users_raw, bracket_raw, weeks_raw, draft, transactions = await asyncio.gather(
            self.get_json(f"{base}/rosters", data_type="rosters", event_ref=league_id),
            self.get_json(f"{base}/users", data_type="users", event_ref=league_id),
            self.get_json(f"{base}/winners_bracket", data_type="winners_bracket", event_ref=league_id),
            self.collect_weeks(lambda week: self._matchup_week(league_id, week), label="matchups"),
            self._draft(league_id),
            self._transactions(league_id),
            return_exceptions=True,
        )

        if isinstance(rosters_raw, AuthError):
            raise rosters_raw
        if isinstance(rosters_raw, BaseException) or not isinstance(rosters_raw, list):
            raise FetchError(
                f"Could not load Sleeper rosters for {year}: {rosters_raw}",
                provider=self.provider,
            )

        users = settled(users_raw, [], label="users", provider=self.provider)
        bracket = settled(bracket_raw, None, label="winners bracket", provider=self.provider)
        weeks_raw = settled(weeks_raw, {}, label="matchups", provider=self.provider)
        draft = settled(draft, None, label="draft", provider=self.provider)
        transactions = settled(transactions, [], label="transactions", provider=self.provider)

        rosters = sleeper_parser.parse_rosters(rosters_raw, users or [], self.name_cache)
        playoff_start = sleeper_parser.playoff_week_start(season_ref.settings)
        winners_by_round = sleeper_parser.bracket_round_teams(bracket) if isinstance(bracket, list) else None
        matchups = {
            week: sleeper_parser.parse_matchups(
                entries,
                week=week,
                playoff_start=playoff_start,
                winners_by_round=winners_by_round,
            )
            for week, entries in weeks_raw.items()
        }
        playoff_results = (
            derive_flagged_bracket(bracket, [r.team_ref for r in rosters])
            if isinstance(bracket, list)
            else {}
        )

        return SeasonData(
            season_year=year,
            rosters=rosters,
            matchups=matchups,
            draft_data=draft,
            transactions=transactions,
            playoff_results=playoff_results,
            settings=season_ref.settings,
        )
