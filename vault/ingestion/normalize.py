"""Provider-independent normalization into the canonical season shape."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from vault.identity import OwnerMatch
from vault.ingestion.schema import MatchupDTO, SeasonData, TeamSeasonDTO

WINNERS_BRACKET = "WINNERS_BRACKET"
NO_TIER = "NONE"


def safe_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def safe_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_list(value: Any) -> list:
    """Single-element collections often arrive as a bare object."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def ref(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def split_points(whole: Any, decimal: Any) -> float:
    """Join an integer total and its hundredths, e.g. (1432, 56) -> 1432.56."""
    return safe_int(whole) + safe_int(decimal) / 100


def merge_fragments(node: Any) -> dict[str, Any]:
    """Merge every dict found at any depth of nested lists into one dict.

    Later keys win. Scalars are ignored.
    """
    merged: dict[str, Any] = {}

    def _walk(item: Any) -> None:
        if isinstance(item, dict):
            merged.update(item)
        elif isinstance(item, list):
            for child in item:
                _walk(child)

    _walk(node)
    return merged


def indexed_values(container: Any, key: str) -> list[Any]:
    """Values of ``{"0": {key: ...}, "1": {...}, "count": N}`` style collections."""
    if isinstance(container, list):
        items = container
    elif isinstance(container, dict):
        items = [value for name, value in container.items() if str(name).isdigit()]
    else:
        return []
    values = []
    for item in items:
        if isinstance(item, dict) and key in item:
            values.append(item[key])
    return values


def order_by_record(rosters: list[TeamSeasonDTO]) -> list[TeamSeasonDTO]:
    return sorted(rosters, key=lambda r: (-r.wins, -r.points_for))


def order_by_rank(rosters: list[TeamSeasonDTO]) -> list[TeamSeasonDTO]:
    return sorted(rosters, key=lambda r: r.rank if r.rank is not None else 99)


def build_weekly_scores(
    matchups: dict[int, list[MatchupDTO]],
    team_ref: str,
) -> list[dict[str, Any]]:
    team_key = str(team_ref)
    scores: list[dict[str, Any]] = []
    for week in sorted(matchups):
        for game in matchups[week]:
            home = str(game.home_team_ref)
            away = str(game.away_team_ref) if game.away_team_ref is not None else None
            if home != team_key and away != team_key:
                continue
            is_home = home == team_key
            scores.append(
                {
                    "week": int(week),
                    "points": game.home_points if is_home else game.away_points,
                    "opponentPoints": game.away_points if is_home else game.home_points,
                    "isPlayoffs": game.is_playoffs,
                    "isConsolation": game.is_consolation,
                }
            )
            break
    return scores


def _bracket_team(value: Any) -> Optional[str]:
    # Unresolved slots are {"w": m} / {"l": m} pointers, not team refs.
    if isinstance(value, (dict, list)):
        return None
    return ref(value)


def derive_flagged_bracket(
    bracket: list[dict[str, Any]],
    team_refs: Iterable[str],
) -> dict[str, str]:
    """Playoff outcomes for brackets whose deciding matches carry a placement flag."""
    teams = [str(team) for team in team_refs]
    matches = [m for m in bracket if isinstance(m, dict)]
    if not matches:
        return {}

    results: dict[str, str] = {}
    final = next((m for m in matches if safe_int(m.get("p"), -1) == 1), None)
    if final is None:
        last_round = max(safe_int(m.get("r")) for m in matches)
        final_round = [m for m in matches if safe_int(m.get("r")) == last_round]
        final = min(final_round, key=lambda m: safe_int(m.get("m")))

    champion = _bracket_team(final.get("w"))
    runner_up = _bracket_team(final.get("l"))
    if champion:
        results[champion] = "champion"
    if runner_up:
        results[runner_up] = "runner_up"

    third = next((m for m in matches if safe_int(m.get("p"), -1) == 3), None)
    if third is not None:
        third_place = _bracket_team(third.get("w"))
        if third_place and third_place not in results:
            results[third_place] = "third_place"

    in_bracket: set[str] = set()
    for match in matches:
        for slot in ("t1", "t2", "w", "l"):
            team = _bracket_team(match.get(slot))
            if team:
                in_bracket.add(team)

    for team in teams:
        if team in results:
            continue
        results[team] = "playoffs" if team in in_bracket else "missed"
    return results


def derive_tier_label(
    games: list[dict[str, Any]],
    team_refs: Iterable[str],
) -> dict[str, str]:
    """Playoff outcomes from matches tagged with a bracket tier.

    Each game is ``{"tier", "home", "away", "winner"}`` with team refs as strings.
    """
    tiered = [g for g in games if g.get("tier") and g.get("tier") != NO_TIER]
    if not tiered:
        return {}

    # Only the winners bracket decides the title; WINNERS_CONSOLATION_LADDER holds
    # the third- and fifth-place games and can sort after the final.
    winners_games = [g for g in tiered if g.get("tier") == WINNERS_BRACKET]
    champion = ref(winners_games[-1].get("winner")) if winners_games else None

    participants: set[str] = set()
    for game in tiered:
        for side in ("home", "away"):
            team = ref(game.get(side))
            if team:
                participants.add(team)

    results: dict[str, str] = {}
    for team in (str(t) for t in team_refs):
        if champion and team == champion:
            results[team] = "champion"
        elif team in participants:
            results[team] = "eliminated"
        else:
            results[team] = "missed"
    return results


def derive_rank_only(rosters: list[TeamSeasonDTO]) -> dict[str, str]:
    results: dict[str, str] = {}
    for roster in rosters:
        if roster.rank == 1:
            results[roster.team_ref] = "champion"
        elif roster.rank == 2:
            results[roster.team_ref] = "runner_up"
        elif roster.playoff_seed:
            results[roster.team_ref] = "eliminated"
        else:
            results[roster.team_ref] = "missed"
    return results


def canonical_owner_name(roster: TeamSeasonDTO) -> str:
    return roster.owner_name or roster.team_name or f"Team {roster.team_ref}"


def build_season_records(
    season: SeasonData,
    *,
    league_id: int,
    import_id: Optional[int],
    owner_match: Optional[OwnerMatch],
    importer_user_id: Optional[str],
) -> list[dict[str, Any]]:
    """Map one season's rosters to HistoricalSeason column values, in standing order."""
    records: list[dict[str, Any]] = []
    for standing, roster in enumerate(season.rosters, start=1):
        is_importer = owner_match is not None and owner_match.index == standing - 1
        records.append(
            {
                "league_id": league_id,
                "import_id": import_id,
                "season_year": season.season_year,
                "team_name": roster.team_name or canonical_owner_name(roster),
                "owner_name": canonical_owner_name(roster),
                "owner_user_id": importer_user_id if is_importer else None,
                "final_standing": standing,
                "wins": roster.wins,
                "losses": roster.losses,
                "ties": roster.ties,
                "points_for": roster.points_for,
                "points_against": roster.points_against,
                "playoff_result": season.playoff_results.get(roster.team_ref),
                "draft_data": season.draft_data,
                "roster_data": roster.roster or {},
                "weekly_scores": build_weekly_scores(season.matchups, roster.team_ref),
                "transactions": season.transactions or None,
                "settings": season.settings,
            }
        )
    return records
