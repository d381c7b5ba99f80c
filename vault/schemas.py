from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SeasonRefOut(BaseModel):
    year: int
    name: Optional[str] = None
    team_count: Optional[int] = None


class DiscoveryOut(BaseModel):
    name: str
    sport: str
    total_seasons: int
    seasons: list[SeasonRefOut]


class ImportRequest(BaseModel):
    league_ref: str = ""
    # Provider credentials; only the ones the provider needs are read.
    espn_s2: Optional[str] = None
    swid: Optional[str] = None
    access_token: Optional[str] = None
    api_key: Optional[str] = None
    standings_csv: Optional[str] = None
    draft_csv: Optional[str] = None
    season_year: Optional[int] = None
    league_name: Optional[str] = None

    target_league_id: Optional[int] = None
    selected_seasons: Optional[list[int]] = None
    importer_name: Optional[str] = None


class ImportResultOut(BaseModel):
    import_id: int
    league_id: int
    league_name: str
    seasons_imported: list[int]
    repaired_seasons: list[int]
    total_seasons: int


class ImportJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    provider: str
    provider_league_ref: str
    provider_league_name: Optional[str]
    status: str
    seasons_found: int
    seasons_imported: list[int]
    progress_pct: int
    error_log: list[dict[str, Any]]
    canonical_league_id: Optional[int]
    completed_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class SeasonRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    season_year: int
    team_name: str
    owner_name: str
    owner_user_id: Optional[str]
    final_standing: Optional[int]
    wins: int
    losses: int
    ties: int
    points_for: float
    points_against: float
    playoff_result: Optional[str]
    weekly_scores: Optional[list[dict[str, Any]]]


class LeagueHistoryOut(BaseModel):
    league_id: int
    name: str
    seasons: dict[int, list[SeasonRecordOut]]


class AliasUpdate(BaseModel):
    aliases: dict[str, str] = Field(default_factory=dict)


class YahooTokenIn(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
