"""Parser for Yahoo Fantasy Sports ``format=json`` payloads.

Yahoo encodes most resources as lists of single-key fragments, e.g. a team is
``[[{"team_key": ...}, {"team_id": ...}, {"name": ...}], {"team_standings": ...}]``.
Everything here goes through ``merge_fragments`` before fields are read.
"""

from __future__ import annotations

from typing import Any, Optional

from vault.ingestion.normalize import (
    indexed_values,
    merge_fragments,
    optional_int,
    order_by_rank,
    ref,
    safe_float,
    safe_int,
)
from vault.ingestion.schema import MatchupDTO, TeamSeasonDTO

HIDDEN_MANAGER = "--hidden--"

# Used when the user's game list cannot be enumerated.
NFL_GAME_KEYS: dict[int, str] = {
    2001: "57",
    2002: "49",
    2003: "79",
    2004: "101",
    2005: "124",
    2006: "153",
    2007: "175",
    2008: "199",
    2009: "222",
    2010: "242",
    2011: "257",
    2012: "273",
    2013: "314",
    2014: "331",
    2015: "348",
    2016: "359",
    2017: "371",
    2018: "380",
    2019: "390",
    2020: "399",
    2021: "406",
    2022: "414",
    2023: "423",
    2024: "449",
    2025: "461",
}


def _content(payload: Any, key: str) -> Any:
    content = payload.get("fantasy_content") if isinstance(payload, dict) else None
    if not isinstance(content, dict):
        return None
    return content.get(key)


def league_node(payload: Any) -> dict[str, Any]:
    return merge_fragments(_content(payload, "league"))


def _first_section(value: Any) -> dict[str, Any]:
    # Sections come as [{...}] or {"0": {...}, "count": 1}.
    if isinstance(value, list):
        return merge_fragments(value)
    if isinstance(value, dict):
        inner = value.get("0")
        return inner if isinstance(inner, dict) else value
    return {}


def parse_game_keys(payload: Any) -> list[tuple[int, str]]:
    """(season, game_key) pairs newest first from a ``users;use_login=1/games`` payload."""
    users = _content(payload, "users")
    pairs: dict[int, str] = {}
    for user in indexed_values(users, "user"):
        games = merge_fragments(user).get("games")
        for game in indexed_values(games, "game"):
            meta = merge_fragments(game)
            season = safe_int(meta.get("season"))
            key = ref(meta.get("game_key"))
            if season and key and (meta.get("code") in (None, "nfl")):
                pairs[season] = key
    return sorted(pairs.items(), reverse=True)


def fallback_game_keys() -> list[tuple[int, str]]:
    return sorted(NFL_GAME_KEYS.items(), reverse=True)


def league_key(game_key: str, league_id: str) -> str:
    return f"{game_key}.l.{league_id}"


def pointer_to_key(pointer: Any) -> Optional[str]:
    """``renew``/``renewed`` values look like ``"390_123456"``."""
    if not pointer or not isinstance(pointer, str) or "_" not in pointer:
        return None
    game_key, _, league_id = pointer.partition("_")
    if not game_key or not league_id:
        return None
    return league_key(game_key, league_id)


def parse_league_meta(payload: Any) -> Optional[dict[str, Any]]:
    league = league_node(payload)
    key = ref(league.get("league_key"))
    if key is None:
        return None
    return {
        "league_key": key,
        "name": league.get("name"),
        "season": safe_int(league.get("season")),
        "num_teams": optional_int(league.get("num_teams")),
        "renew": pointer_to_key(league.get("renew")),
        "renewed": pointer_to_key(league.get("renewed")),
        "settings": {"settings": merge_fragments(league.get("settings")) or None},
    }


def _manager(team: dict[str, Any]) -> dict[str, Any]:
    managers = team.get("managers")
    values = indexed_values(managers, "manager")
    return values[0] if values and isinstance(values[0], dict) else {}


def owner_label(team: dict[str, Any]) -> str:
    manager = _manager(team)
    nickname = manager.get("nickname")
    if nickname and nickname != HIDDEN_MANAGER:
        return nickname
    return team.get("name") or manager.get("guid") or f"Team {team.get('team_id')}"


def parse_standings(payload: Any) -> list[TeamSeasonDTO]:
    standings = _first_section(league_node(payload).get("standings"))
    parsed: list[TeamSeasonDTO] = []
    for node in indexed_values(standings.get("teams"), "team"):
        team = merge_fragments(node)
        key = ref(team.get("team_key"))
        if key is None:
            continue
        line = team.get("team_standings") if isinstance(team.get("team_standings"), dict) else {}
        outcomes = line.get("outcome_totals") if isinstance(line.get("outcome_totals"), dict) else {}
        parsed.append(
            TeamSeasonDTO(
                team_ref=key,
                team_name=team.get("name") or f"Team {team.get('team_id')}",
                owner_name=owner_label(team),
                owner_ref=ref(_manager(team).get("guid")),
                wins=safe_int(outcomes.get("wins")),
                losses=safe_int(outcomes.get("losses")),
                ties=safe_int(outcomes.get("ties")),
                points_for=safe_float(line.get("points_for")),
                points_against=safe_float(line.get("points_against")),
                rank=optional_int(line.get("rank")),
                playoff_seed=optional_int(line.get("playoff_seed")) or None,
            )
        )
    return order_by_rank(parsed)


def _team_points(team: dict[str, Any]) -> float:
    points = team.get("team_points")
    return safe_float(points.get("total")) if isinstance(points, dict) else 0.0


def _matchup_teams(matchup: dict[str, Any]) -> list[dict[str, Any]]:
    teams = matchup.get("teams")
    if teams is None:
        teams = _first_section(matchup).get("teams")
    return [merge_fragments(node) for node in indexed_values(teams, "team")]


def parse_scoreboard(payload: Any) -> list[MatchupDTO]:
    scoreboard = _first_section(league_node(payload).get("scoreboard"))
    games: list[MatchupDTO] = []
    for matchup in indexed_values(scoreboard.get("matchups"), "matchup"):
        if not isinstance(matchup, dict):
            continue
        teams = [t for t in _matchup_teams(matchup) if t.get("team_key")]
        if len(teams) < 2:
            continue
        home, away = teams[0], teams[1]
        games.append(
            MatchupDTO(
                home_team_ref=str(home["team_key"]),
                home_points=_team_points(home),
                away_team_ref=str(away["team_key"]),
                away_points=_team_points(away),
                is_playoffs=str(matchup.get("is_playoffs")) == "1",
                is_consolation=str(matchup.get("is_consolation")) == "1",
            )
        )
    return games


def parse_draft_results(payload: Any) -> Optional[dict[str, Any]]:
    results = league_node(payload).get("draft_results")
    picks = [p for p in indexed_values(results, "draft_result") if isinstance(p, dict)]
    if not picks:
        return None
    return {
        "type": "snake",
        "picks": [
            {
                "round": safe_int(pick.get("round")),
                "pick": safe_int(pick.get("pick")),
                "teamRef": ref(pick.get("team_key")),
                "playerId": ref(pick.get("player_key")),
                "playerName": None,
                "amount": optional_int(pick.get("cost")),
            }
            for pick in picks
        ],
    }


def _transaction_players(players: Any) -> list[dict[str, Any]]:
    moves = []
    for node in indexed_values(players, "player"):
        player = merge_fragments(node)
        name = player.get("name") if isinstance(player.get("name"), dict) else {}
        data = merge_fragments(player.get("transaction_data"))
        moves.append(
            {
                "playerId": ref(player.get("player_key")),
                "playerName": name.get("full"),
                "type": data.get("type"),
                "fromTeamRef": ref(data.get("source_team_key")),
                "toTeamRef": ref(data.get("destination_team_key")),
            }
        )
    return moves


def parse_transactions(payload: Any) -> list[dict[str, Any]]:
    transactions = league_node(payload).get("transactions")
    parsed = []
    for node in indexed_values(transactions, "transaction"):
        txn = merge_fragments(node)
        moves = _transaction_players(txn.get("players"))
        team_refs = sorted({m[k] for m in moves for k in ("fromTeamRef", "toTeamRef") if m[k]})
        parsed.append(
            {
                "id": ref(txn.get("transaction_key")),
                "type": txn.get("type"),
                "status": txn.get("status"),
                "timestamp": optional_int(txn.get("timestamp")),
                "teamRefs": team_refs,
                "items": moves,
            }
        )
    return parsed
