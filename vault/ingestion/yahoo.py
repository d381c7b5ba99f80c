"""Yahoo adapter: new league key every season, linked by renew/renewed pointers."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

from vault.ingestion import yahoo_parser
from vault.ingestion.base import ProviderAdapter, settled
from vault.ingestion.errors import (
    AuthError,
    FetchError,
    NotFoundError,
    ProviderError,
    RateLimitError,
)
from vault.ingestion.normalize import derive_rank_only
from vault.ingestion.schema import Discovery, SeasonData, SeasonRef, YahooOAuth

logger = logging.getLogger(__name__)
YAHOO_BASE_URL = os.getenv(
    "YAHOO_BASE_URL", "https://fantasysports.yahooapis.com/fantasy/v2"
).rstrip("/")
AUTH_MESSAGE = "Yahoo authentication expired. Please re-authorize."


class YahooSession:
    """Bearer token for one discover/import call, refreshed at most once per request."""

    def __init__(self, credentials: Optional[YahooOAuth]) -> None:
        if credentials is None or not credentials.access_token:
            raise AuthError("Yahoo access token is required", provider="yahoo")
        self._credentials = credentials
        self.access_token = credentials.access_token
        self._refresh = credentials.refresh
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    async def refreshed_token(self, stale_token: str) -> Optional[str]:
        if self._refresh is None:
            return None
        async with self._lock:
            # Another request already swapped the token while this one waited.
            if self.access_token != stale_token:
                return self.access_token
            try:
                token = await asyncio.to_thread(self._refresh)
            except Exception as exc:
                raise AuthError(
                    "Yahoo token refresh failed. Please re-authorize.",
                    provider="yahoo",
                ) from exc
            self.refresh_count += 1
            if not token:
                return None
            self.access_token = token
            # Later seasons of the same import start from the new token.
            self._credentials.access_token = token
            return token


class YahooAdapter(ProviderAdapter):
    provider = "yahoo"

    async def _get(self, session: YahooSession, path: str, *, data_type: str, event_ref: str) -> Any:
        token = session.access_token
        try:
            return await self._get_with(token, path, data_type=data_type, event_ref=event_ref)
        except AuthError:
            fresh = await session.refreshed_token(token)
            if not fresh:
                raise
            logger.info("Yahoo token refreshed, retrying %s", path)
            return await self._get_with(fresh, path, data_type=data_type, event_ref=event_ref)

    def _get_with(self, token: str, path: str, *, data_type: str, event_ref: str):
        return self.get_json(
            f"{YAHOO_BASE_URL}{path}",
            data_type=data_type,
            event_ref=event_ref,
            params={"format": "json"},
            headers={"Authorization": f"Bearer {token}"},
            auth_message=AUTH_MESSAGE,
        )

    async def _game_keys(self, session: YahooSession) -> list[tuple[int, str]]:
        try:
            payload = await self._get(
                session,
                "/users;use_login=1/games;game_codes=nfl",
                data_type="games",
                event_ref="use_login",
            )
            keys = yahoo_parser.parse_game_keys(payload)
        except (AuthError, RateLimitError):
            raise
        except ProviderError as exc:
            logger.warning("Yahoo game enumeration failed, using fallback table: %s", exc)
            keys = []
        return keys or yahoo_parser.fallback_game_keys()

    async def _league_meta(self, session: YahooSession, key: str) -> Optional[dict[str, Any]]:
        payload = await self._get(session, f"/league/{key}/settings", data_type="league_settings", event_ref=key)
        return yahoo_parser.parse_league_meta(payload)

    async def _anchor(self, session: YahooSession, league_id: str) -> Optional[dict[str, Any]]:
        for year, game_key in await self._game_keys(session):
            key = yahoo_parser.league_key(game_key, league_id)
            try:
                meta = await self._league_meta(session, key)
            except (AuthError, RateLimitError):
                raise
            except ProviderError:
                continue
            if meta is not None:
                logger.info("Yahoo league %s anchored at %s (%s)", league_id, key, year)
                return meta
        return None

    async def _walk(
        self,
        session: YahooSession,
        start: dict[str, Any],
        direction: str,
        found: dict[str, dict[str, Any]],
    ) -> None:
        pointer = start.get(direction)
        hops = 0
        while pointer and pointer not in found and hops < self.settings.yahoo_max_hops:
            hops += 1
            try:
                meta = await self._league_meta(session, pointer)
            except (AuthError, RateLimitError):
                raise
            except ProviderError as exc:
                logger.warning("Yahoo %s chain stopped at %s: %s", direction, pointer, exc)
                return
            if meta is None:
                return
            found[meta["league_key"]] = meta
            pointer = meta.get(direction)

    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        league_id = str(league_ref).strip()
        # Accept a full league key as well as the bare numeric id.
        if ".l." in league_id:
            league_id = league_id.split(".l.", 1)[1]
        session = YahooSession(credentials)

        anchor = await self._anchor(session, league_id)
        if anchor is None:
            raise NotFoundError(
                "No Yahoo league data found. Check your league ID and ensure your OAuth token is valid.",
                provider=self.provider,
            )

        found = {anchor["league_key"]: anchor}
        await self._walk(session, anchor, "renew", found)
        await self._walk(session, anchor, "renewed", found)

        metas = sorted(found.values(), key=lambda meta: meta["season"])
        seasons = [
            SeasonRef(
                year=meta["season"],
                ref=meta["league_key"],
                name=meta.get("name"),
                team_count=meta.get("num_teams"),
                settings=meta.get("settings"),
            )
            for meta in metas
            if meta["season"]
        ]
        name = seasons[-1].name if seasons and seasons[-1].name else f"Yahoo League {league_id}"
        logger.info("Yahoo discovery league=%s seasons=%s", league_id, [s.year for s in seasons])
        return Discovery(name=name, sport="nfl", seasons=seasons)

    async def _scoreboard_week(self, session: YahooSession, key: str, week: int) -> list:
        payload = await self._get(
            session,
            f"/league/{key}/scoreboard;week={week}",
            data_type="scoreboard",
            event_ref=f"{key}:{week}",
        )
        return yahoo_parser.parse_scoreboard(payload)

    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        key = season_ref.ref
        session = YahooSession(credentials)
        standings_raw, weeks, draft_raw, txn_raw = await asyncio.gather(
            self._get(session, f"/league/{key}/standings", data_type="standings", event_ref=key),
            self.collect_weeks(lambda week: self._scoreboard_week(session, key, week), label="scoreboard"),
            self._get(session, f"/league/{key}/draftresults", data_type="draftresults", event_ref=key),
            self._get(session, f"/league/{key}/transactions", data_type="transactions", event_ref=key),
            return_exceptions=True,
        )

        if isinstance(standings_raw, AuthError):
            raise standings_raw
        if isinstance(standings_raw, BaseException):
            raise FetchError(
                f"Could not load Yahoo standings for {year}: {standings_raw}",
                provider=self.provider,
            )

        rosters = yahoo_parser.parse_standings(standings_raw)
        weeks = settled(weeks, {}, label="scoreboard", provider=self.provider)
        draft_raw = settled(draft_raw, None, label="draft results", provider=self.provider)
        txn_raw = settled(txn_raw, None, label="transactions", provider=self.provider)

        return SeasonData(
            season_year=year,
            rosters=rosters,
            matchups=weeks,
            draft_data=yahoo_parser.parse_draft_results(draft_raw),
            transactions=yahoo_parser.parse_transactions(txn_raw),
            playoff_results=derive_rank_only(rosters),
            settings=season_ref.settings,
        )
