"""Fantrax adapter: offline, works from CSV exports the user uploads."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from vault.ingestion import fantrax_parser
from vault.ingestion.base import ProviderAdapter
from vault.ingestion.errors import FetchError
from vault.ingestion.normalize import derive_rank_only
from vault.ingestion.schema import Discovery, FantraxCsv, SeasonData, SeasonRef

logger = logging.getLogger(__name__)
DEFAULT_NAME = "Fantrax League"


def _require_csv(credentials: Any) -> FantraxCsv:
    if not isinstance(credentials, FantraxCsv) or not credentials.standings_csv:
        raise FetchError("Standings CSV is required", provider="fantrax")
    return credentials


class FantraxAdapter(ProviderAdapter):
    provider = "fantrax"

    def __init__(self, *, current_year: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.current_year = current_year

    def _archive_csv(self, data_type: str, event_ref: str, text: str) -> None:
        self.archive_raw(
            data_type,
            event_ref,
            {"csvText": text, "charCount": len(text)},
            record_count=max(len(text.strip().splitlines()) - 1, 0),
        )

    def _parse(self, text: str):
        try:
            return fantrax_parser.parse_standings(text)
        except fantrax_parser.CsvFormatError as exc:
            raise FetchError(str(exc), provider=self.provider) from exc

    async def discover(self, league_ref: str, credentials: Any = None) -> Discovery:
        csv_data = _require_csv(credentials)
        name = csv_data.league_name or DEFAULT_NAME
        event_ref = league_ref or name
        self._archive_csv("standings", event_ref, csv_data.standings_csv)

        teams = self._parse(csv_data.standings_csv)
        year = csv_data.season_year or self.current_year or date.today().year
        logger.info("Fantrax CSV league=%s year=%s teams=%s", name, year, len(teams))
        return Discovery(
            name=name,
            sport="nfl",
            seasons=[SeasonRef(year=year, ref=event_ref, name=name, team_count=len(teams))],
        )

    async def import_season(
        self,
        season_ref: SeasonRef,
        year: int,
        credentials: Any = None,
    ) -> SeasonData:
        csv_data = _require_csv(credentials)
        rosters = self._parse(csv_data.standings_csv)
        if csv_data.draft_csv:
            self._archive_csv("draft", season_ref.ref, csv_data.draft_csv)

        return SeasonData(
            season_year=year,
            rosters=rosters,
            matchups={},
            draft_data=fantrax_parser.parse_draft(csv_data.draft_csv),
            transactions=[],
            playoff_results=derive_rank_only(rosters),
            settings=None,
        )
