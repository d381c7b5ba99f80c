"""Parser for MyFantasyLeague ``export?JSON=1`` payloads.

MFL collapses one-element collections into a bare object, so every
collection read goes through ``as_list``.
"""

from __future__ import annotations

from typing import Any, Optional

from vault.ingestion.normalize import (
    as_list,
    optional_int,
    order_by_rank,
    ref,
    safe_float,
    safe_int,
)
from vault.ingestion.schema import MatchupDTO, TeamSeasonDTO

AUTH_MARKERS = ("api key", "apikey", "permission", "login", "not authorized", "unauthorized")


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def error_message(payload: Any) -> Optional[str]:
    """MFL reports failures as ``200 {"error": {"$t": "..."}}``."""
    error = _dict(payload).get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("$t") or error)
    return str(error)


def is_auth_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in AUTH_MARKERS)


def franchises(league_payload: Any) -> list[dict[str, Any]]:
    league = _dict(_dict(league_payload).get("league"))
    return [f for f in as_list(_dict(league.get("franchises")).get("franchise")) if isinstance(f, dict)]


def parse_season_ref(payload: Any) -> Optional[dict[str, Any]]:
    league = _dict(payload).get("league")
    if not isinstance(league, dict):
        return None
    snapshot = {key: value for key, value in league.items() if key != "franchises"}
    return {
        "name": league.get("name"),
        "team_count": len(franchises(payload)) or None,
        "settings": {"league": snapshot},
    }


def last_regular_week(settings: Optional[dict[str, Any]]) -> Optional[int]:
    league = _dict(_dict(settings).get("league"))
    return optional_int(league.get("lastRegularSeasonWeek")) or None


def _roster_details(rosters_payload: Any) -> dict[str, list[dict[str, Any]]]:
    details: dict[str, list[dict[str, Any]]] = {}
    for franchise in as_list(_dict(_dict(rosters_payload).get("rosters")).get("franchise")):
        if not isinstance(franchise, dict) or franchise.get("id") is None:
            continue
        details[str(franchise["id"])] = [
            {
                "playerId": ref(player.get("id")),
                "status": player.get("status"),
                "contractYear": player.get("contractYear"),
                "salary": player.get("salary"),
            }
            for player in as_list(franchise.get("player"))
            if isinstance(player, dict)
        ]
    return details


def parse_standings(
    standings_payload: Any,
    league_payload: Any = None,
    rosters_payload: Any = None,
) -> list[TeamSeasonDTO]:
    names = {str(f.get("id")): f for f in franchises(league_payload)}
    rosters = _roster_details(rosters_payload)
    parsed: list[TeamSeasonDTO] = []
    lines = as_list(_dict(_dict(standings_payload).get("leagueStandings")).get("franchise"))
    for rank, line in enumerate((item for item in lines if isinstance(item, dict)), start=1):
        franchise_id = ref(line.get("id"))
        if franchise_id is None:
            continue
        franchise = names.get(franchise_id, {})
        team_name = franchise.get("name") or f"Team {franchise_id}"
        parsed.append(
            TeamSeasonDTO(
                team_ref=franchise_id,
                team_name=team_name,
                owner_name=franchise.get("owner_name") or team_name,
                wins=safe_int(line.get("h2hw") or line.get("w")),
                losses=safe_int(line.get("h2hl") or line.get("l")),
                ties=safe_int(line.get("h2ht") or line.get("t")),
                points_for=safe_float(line.get("pf") or line.get("pp")),
                points_against=safe_float(line.get("pa") or line.get("op")),
                rank=rank,
                roster={
                    "players": rosters.get(franchise_id, []),
                    "allPlayWins": safe_int(line.get("all_play_w")),
                    "allPlayLosses": safe_int(line.get("all_play_l")),
                },
            )
        )
    return order_by_rank(parsed)


def parse_weekly_results(
    payload: Any,
    *,
    week: int,
    last_regular: Optional[int] = None,
) -> list[MatchupDTO]:
    games: list[MatchupDTO] = []
    is_playoffs = bool(last_regular) and week > last_regular
    for matchup in as_list(_dict(_dict(payload).get("weeklyResults")).get("matchup")):
        sides = [s for s in as_list(_dict(matchup).get("franchise")) if isinstance(s, dict)]
        if not sides or sides[0].get("id") is None:
            continue
        home = sides[0]
        away = sides[1] if len(sides) > 1 else {}
        games.append(
            MatchupDTO(
                home_team_ref=str(home["id"]),
                home_points=safe_float(home.get("score")),
                away_team_ref=ref(away.get("id")),
                away_points=safe_float(away.get("score")),
                is_playoffs=is_playoffs,
            )
        )
    return games


def parse_draft(payload: Any) -> Optional[dict[str, Any]]:
    picks = []
    for unit in as_list(_dict(_dict(payload).get("draftResults")).get("draftUnit")):
        for pick in as_list(_dict(unit).get("draftPick")):
            if not isinstance(pick, dict):
                continue
            picks.append(
                {
                    "round": safe_int(pick.get("round")),
                    "pick": safe_int(pick.get("pick")),
                    "teamRef": ref(pick.get("franchise")),
                    "playerId": ref(pick.get("player")),
                    "playerName": None,
                    "salary": pick.get("salary") or None,
                    "comments": pick.get("comments") or None,
                }
            )
    if not picks:
        return None
    return {"type": "snake", "picks": picks}


def parse_transactions(payload: Any) -> list[dict[str, Any]]:
    parsed = []
    for txn in as_list(_dict(_dict(payload).get("transactions")).get("transaction")):
        if not isinstance(txn, dict):
            continue
        franchise = ref(txn.get("franchise"))
        parsed.append(
            {
                "type": txn.get("type"),
                "timestamp": optional_int(txn.get("timestamp")),
                "teamRefs": [franchise] if franchise else [],
                "detail": txn.get("transaction"),
            }
        )
    return parsed
