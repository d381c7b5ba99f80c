"""Internal data contract between provider adapters and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

PlayoffResult = Literal[
    "champion",
    "runner_up",
    "third_place",
    "playoffs",
    "eliminated",
    "missed",
]


@dataclass(frozen=True)
class SeasonRef:
    year: int
    ref: str
    name: Optional[str] = None
    team_count: Optional[int] = None
    settings: Optional[dict[str, Any]] = None


@dataclass
class Discovery:
    name: str
    sport: str
    seasons: list[SeasonRef] = field(default_factory=list)

    @property
    def total_seasons(self) -> int:
        return len(self.seasons)


# Credentials, one shape per provider.


@dataclass(frozen=True)
class EspnCookies:
    espn_s2: Optional[str] = None
    swid: Optional[str] = None


@dataclass
class YahooOAuth:
    """Bearer token plus refresh callback; a refreshed token is written back for later calls."""

    access_token: str
    refresh: Optional[Callable[[], str]] = None


@dataclass(frozen=True)
class MflApiKey:
    api_key: str


@dataclass(frozen=True)
class FantraxCsv:
    standings_csv: str
    draft_csv: Optional[str] = None
    season_year: Optional[int] = None
    league_name: Optional[str] = None


class TeamSeasonDTO(BaseModel):
    """
    One team's standings line for a season, keyed by the provider's team ref.
    """

    team_ref: str
    team_name: str
    owner_name: str
    owner_ref: Optional[str] = None
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    rank: Optional[int] = None
    playoff_seed: Optional[int] = None
    roster: dict[str, Any] = Field(default_factory=dict)


class MatchupDTO(BaseModel):
    home_team_ref: str
    home_points: float = 0.0
    away_team_ref: Optional[str] = None
    away_points: float = 0.0
    matchup_ref: Optional[str] = None
    is_playoffs: bool = False
    is_consolation: bool = False


class SeasonData(BaseModel):
    # Required fields
    season_year: int
    rosters: list[TeamSeasonDTO]

    # Optional slices, empty when the provider call failed
    matchups: dict[int, list[MatchupDTO]] = Field(default_factory=dict)
    draft_data: Optional[dict[str, Any]] = None
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    playoff_results: dict[str, PlayoffResult] = Field(default_factory=dict)
    settings: Optional[dict[str, Any]] = None
