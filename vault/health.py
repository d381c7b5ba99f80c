"""Completeness and consistency audit of a league's stored season history."""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from vault.models import HistoricalSeason, OwnerAlias

logger = logging.getLogger(__name__)

SEVERITY_PENALTY = {"high": 30, "medium": 15, "low": 5, "info": 0}

# Expected W+L+T per team, by NFL schedule era.
GAMES_BY_ERA = (
    (2021, 13, 17),
    (2001, 12, 16),
    (0, 10, 16),
)


def expected_game_range(year: int) -> tuple[int, int]:
    for first_year, minimum, maximum in GAMES_BY_ERA:
        if year >= first_year:
            return minimum, maximum
    return GAMES_BY_ERA[-1][1], GAMES_BY_ERA[-1][2]


def status_for(score: int) -> str:
    if score >= 80:
        return "green"
    if score >= 50:
        return "yellow"
    return "red"


def _issue(
    issue_type: str,
    severity: str,
    season_year: Optional[int],
    message: str,
    repair_action: Optional[str] = None,
    repair_label: Optional[str] = None,
) -> dict[str, Any]:
    return {
        "type": issue_type,
        "severity": severity,
        "season_year": season_year,
        "message": message,
        "repair_action": repair_action,
        "repair_label": repair_label,
    }


def _label(team: Mapping[str, Any]) -> str:
    return team.get("owner_name") or team.get("team_name") or "Unknown"


def _games(team: Mapping[str, Any]) -> int:
    return (team.get("wins") or 0) + (team.get("losses") or 0) + (team.get("ties") or 0)


def _points(team: Mapping[str, Any]) -> float:
    return float(team.get("points_for") or 0)


def _season_issues(year: int, teams: list[Mapping[str, Any]], modal_count: int, current_year: int) -> list[dict[str, Any]]:
    issues: list[dict[str, Any]] = []
    completed = year < current_year

    low, high = expected_game_range(year)
    for team in teams:
        games = _games(team)
        if games > 0 and (games < low or games > high):
            issues.append(
                _issue(
                    "GAME_COUNT_ANOMALY",
                    "medium",
                    year,
                    f"{year}: {_label(team)} shows {games} games played (expected {low}-{high}).",
                    "EDIT_SEASON",
                    f"Edit {year} Season",
                )
            )
            break

    scored = [team for team in teams if _points(team) > 0]
    if not scored and completed:
        issues.append(
            _issue(
                "ZERO_POINTS",
                "high",
                year,
                f"{year}: No teams have points scored. Season point data is missing.",
                "EDIT_SEASON",
                f"Edit {year} Season",
            )
        )
    elif scored and len(scored) < len(teams):
        zero = len(teams) - len(scored)
        verb = "teams have" if zero != 1 else "team has"
        issues.append(
            _issue(
                "ZERO_POINTS",
                "medium",
                year,
                f"{year}: {zero} {verb} 0 points scored while others have data.",
                "EDIT_SEASON",
                f"Edit {year} Season",
            )
        )

    if len(scored) >= 4:
        values = [_points(team) for team in scored]
        mean = sum(values) / len(values)
        std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
        if std_dev > 0:
            for team in scored:
                points = _points(team)
                if abs(points - mean) > 3 * std_dev:
                    direction = "high" if points > mean else "low"
                    issues.append(
                        _issue(
                            "POINTS_OUTLIER",
                            "low",
                            year,
                            f"{year}: {_label(team)} has {points:.1f} PF which is unusually {direction} for the season.",
                            "EDIT_SEASON",
                            f"Review {year} Season",
                        )
                    )
                    break

    if abs(len(teams) - modal_count) > 2:
        issues.append(
            _issue(
                "TEAM_COUNT_ANOMALY",
                "medium",
                year,
                f"{year}: Has {len(teams)} teams (most seasons have {modal_count}).",
                "EDIT_SEASON",
                f"Review {year} Season",
            )
        )

    champions = [team for team in teams if team.get("playoff_result") == "champion"]
    if len(champions) > 1:
        names = ", ".join(_label(team) for team in champions)
        issues.append(
            _issue(
                "MULTIPLE_CHAMPIONS",
                "low",
                year,
                f"{year}: Multiple teams marked as champion ({names}).",
                "EDIT_SEASON",
                f"Edit {year} Season",
            )
        )
    elif not champions and completed:
        issues.append(
            _issue(
                "NO_CHAMPION",
                "low",
                year,
                f"{year}: No champion designated for this season.",
                "EDIT_SEASON",
                f"Edit {year} Season",
            )
        )

    if year > current_year:
        issues.append(
            _issue(
                "FUTURE_SEASON",
                "medium",
                year,
                f"{year}: This season is in the future and may have been imported incorrectly.",
                "DELETE_SEASON",
                f"Remove {year} Season",
            )
        )
    elif year == current_year:
        issues.append(
            _issue(
                "CURRENT_YEAR_PARTIAL",
                "info",
                year,
                f"{year}: Current season, data may be incomplete.",
            )
        )

    played = [t for t in teams if (t.get("wins") or 0) + (t.get("losses") or 0) > 0]
    if played and completed and not any(t.get("weekly_scores") for t in teams):
        issues.append(
            _issue(
                "MISSING_WEEKLY_SCORES",
                "medium",
                year,
                f"{year}: No weekly score data, so best-week and matchup records can't be computed.",
            )
        )

    if completed and all(not t.get("wins") and not t.get("losses") for t in teams):
        issues.append(
            _issue(
                "ZERO_RECORDS",
                "high",
                year,
                f"{year}: All teams show 0-0 records. W/L data is missing.",
                "EDIT_SEASON",
                f"Edit {year} Season",
            )
        )
    return issues


def _season_score(issues: Iterable[Mapping[str, Any]]) -> int:
    score = 100 - sum(SEVERITY_PENALTY.get(issue["severity"], 0) for issue in issues)
    return max(0, score)


def _cross_season_issues(by_year: dict[int, list[Mapping[str, Any]]]) -> list[dict[str, Any]]:
    issues: list[dict[str, Any]] = []
    seasons_by_owner: Counter = Counter()
    games_by_owner: Counter = Counter()
    for teams in by_year.values():
        for team in teams:
            seasons_by_owner[_label(team)] += 1
            games_by_owner[_label(team)] += _games(team)

    if len(by_year) > 2:
        for name, count in seasons_by_owner.items():
            if count == 1:
                issues.append(
                    _issue(
                        "ORPHAN_OWNER",
                        "info",
                        None,
                        f'"{name}" appears in only 1 season. May be an alias or a one-year member.',
                        "MANAGE_OWNERS",
                        "Manage Owners",
                    )
                )

    if len(by_year) >= 5:
        for name, seasons in seasons_by_owner.items():
            if seasons >= 5 and games_by_owner[name] < seasons * 10:
                issues.append(
                    _issue(
                        "LOW_CAREER_GAMES",
                        "medium",
                        None,
                        f'"{name}" has {games_by_owner[name]} total games across {seasons} seasons '
                        f"(expected ~{seasons * 13}+). Some seasons may have missing W/L data.",
                    )
                )
    return issues


def analyze_seasons(
    records: Iterable[Mapping[str, Any]],
    current_year: Optional[int] = None,
) -> dict[str, Any]:
    """Score stored team-season rows; pure, no database access."""
    current_year = current_year or date.today().year
    by_year: dict[int, list[Mapping[str, Any]]] = defaultdict(list)
    for record in records:
        by_year[int(record["season_year"])].append(record)

    if not by_year:
        return {
            "overall_score": 100,
            "overall_status": "green",
            "season_count": 0,
            "year_range": [],
            "missing_years": [],
            "issues": [],
            "per_season": {},
        }

    years = sorted(by_year)
    first_year, last_year = years[0], years[-1]
    counts = Counter(len(by_year[year]) for year in years)
    # Most common team count; ties go to the smaller count.
    modal_count = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0][0]

    issues: list[dict[str, Any]] = []
    per_season: dict[int, dict[str, Any]] = {}

    missing_years = [year for year in range(first_year, last_year + 1) if year not in by_year]
    for year in missing_years:
        issues.append(
            _issue(
                "MISSING_SEASON",
                "high",
                year,
                f"No data found for the {year} season.",
                "ADD_SEASON",
                f"Add {year} Season",
            )
        )

    for year in years:
        season_issues = _season_issues(year, by_year[year], modal_count, current_year)
        score = _season_score(season_issues)
        per_season[year] = {"score": score, "status": status_for(score), "issues": season_issues}
        issues.extend(season_issues)

    issues.extend(_cross_season_issues(by_year))

    for year in missing_years:
        per_season[year] = {
            "score": 0,
            "status": "red",
            "issues": [issue for issue in issues if issue["season_year"] == year],
        }

    scores = [per_season[year]["score"] for year in years + missing_years]
    overall = round(sum(scores) / len(scores))

    if len(years) >= 3:
        recurring = Counter(
            issue["type"]
            for issue in issues
            if issue["season_year"] is not None and issue["severity"] != "info"
        )
        for count in recurring.values():
            ratio = count / len(years)
            if ratio >= 0.8:
                overall -= 15
            elif ratio >= 0.5:
                overall -= 10

    overall -= 3 * sum(
        1 for issue in issues if issue["season_year"] is None and issue["severity"] != "info"
    )
    overall = max(0, min(100, overall))

    return {
        "overall_score": overall,
        "overall_status": status_for(overall),
        "season_count": len(years),
        "year_range": [first_year, last_year],
        "missing_years": missing_years,
        "issues": issues,
        "per_season": dict(sorted(per_season.items())),
    }


def _record_row(row: HistoricalSeason, aliases: dict[str, str]) -> dict[str, Any]:
    return {
        "season_year": row.season_year,
        "team_name": row.team_name,
        "owner_name": aliases.get(row.owner_name, row.owner_name),
        "wins": row.wins,
        "losses": row.losses,
        "ties": row.ties,
        "points_for": row.points_for,
        "points_against": row.points_against,
        "final_standing": row.final_standing,
        "playoff_result": row.playoff_result,
        "weekly_scores": row.weekly_scores,
    }


def analyze_league_health(
    db: Session,
    league_id: int,
    *,
    current_year: Optional[int] = None,
) -> dict[str, Any]:
    rows = (
        db.query(HistoricalSeason)
        .filter(HistoricalSeason.league_id == league_id)
        .order_by(HistoricalSeason.season_year)
        .all()
    )
    aliases = {
        alias.owner_name: alias.canonical_name
        for alias in db.query(OwnerAlias).filter(OwnerAlias.league_id == league_id).all()
    }
    report = analyze_seasons((_record_row(row, aliases) for row in rows), current_year)
    logger.info(
        "Health league=%s score=%s issues=%s",
        league_id,
        report["overall_score"],
        len(report["issues"]),
    )
    return report
