"""Parser for Sleeper league payloads."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from vault.ingestion.cache import TimedCache
from vault.ingestion.normalize import (
    order_by_record,
    ref,
    safe_float,
    safe_int,
    split_points,
)
from vault.ingestion.schema import MatchupDTO, TeamSeasonDTO


def settings_snapshot(league: dict[str, Any]) -> dict[str, Any]:
    return {
        "scoring": league.get("scoring_settings"),
        "positions": league.get("roster_positions"),
        "settings": league.get("settings"),
    }


def playoff_week_start(settings: Optional[dict[str, Any]]) -> Optional[int]:
    if not isinstance(settings, dict):
        return None
    inner = settings.get("settings")
    if not isinstance(inner, dict):
        return None
    week = safe_int(inner.get("playoff_week_start"))
    return week or None


def _player_name(player_id: Any, name_cache: Optional[TimedCache]) -> Optional[str]:
    if name_cache is None or player_id is None:
        return None
    entry = name_cache.get(player_id)
    if isinstance(entry, dict):
        full = entry.get("full_name")
        if full:
            return full
        first, last = entry.get("first_name"), entry.get("last_name")
        if first and last:
            return f"{first} {last}"
        return None
    return entry if isinstance(entry, str) else None


def parse_rosters(
    rosters: list[dict[str, Any]],
    users: list[dict[str, Any]],
    name_cache: Optional[TimedCache] = None,
) -> list[TeamSeasonDTO]:
    user_map = {}
    for user in users or []:
        if isinstance(user, dict) and user.get("user_id"):
            user_map[str(user["user_id"])] = user

    parsed: list[TeamSeasonDTO] = []
    for roster in rosters or []:
        if not isinstance(roster, dict) or roster.get("roster_id") is None:
            continue
        roster_id = str(roster["roster_id"])
        user = user_map.get(str(roster.get("owner_id")), {})
        owner_name = user.get("display_name") or f"Team {roster_id}"
        metadata = user.get("metadata") if isinstance(user.get("metadata"), dict) else {}
        team_name = metadata.get("team_name") or owner_name
        settings = roster.get("settings") if isinstance(roster.get("settings"), dict) else {}

        players = roster.get("players") or []
        roster_blob: dict[str, Any] = {
            "players": players,
            "starters": roster.get("starters") or [],
        }
        if name_cache is not None:
            roster_blob["playerNames"] = {
                str(pid): name
                for pid in players
                if (name := _player_name(pid, name_cache))
            }

        parsed.append(
            TeamSeasonDTO(
                team_ref=roster_id,
                team_name=team_name,
                owner_name=owner_name,
                owner_ref=ref(roster.get("owner_id")),
                wins=safe_int(settings.get("wins")),
                losses=safe_int(settings.get("losses")),
                ties=safe_int(settings.get("ties")),
                points_for=split_points(settings.get("fpts"), settings.get("fpts_decimal")),
                points_against=split_points(
                    settings.get("fpts_against"), settings.get("fpts_against_decimal")
                ),
                roster=roster_blob,
            )
        )
    return order_by_record(parsed)


def bracket_round_teams(bracket: list[dict[str, Any]]) -> dict[int, set[str]]:
    rounds: dict[int, set[str]] = defaultdict(set)
    for match in bracket or []:
        if not isinstance(match, dict):
            continue
        for slot in ("t1", "t2"):
            team = match.get(slot)
            if isinstance(team, (int, str)) and not isinstance(team, bool):
                rounds[safe_int(match.get("r"))].add(str(team))
    return dict(rounds)


def parse_matchups(
    entries: list[dict[str, Any]],
    *,
    week: int,
    playoff_start: Optional[int] = None,
    winners_by_round: Optional[dict[int, set[str]]] = None,
) -> list[MatchupDTO]:
    """Pair per-roster entries sharing a matchup_id into games."""
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for entry in entries or []:
        if not isinstance(entry, dict) or entry.get("matchup_id") is None:
            continue
        grouped[str(entry["matchup_id"])].append(entry)

    is_playoffs = bool(playoff_start) and week >= playoff_start
    round_teams: set[str] = set()
    if is_playoffs and winners_by_round:
        round_teams = winners_by_round.get(week - playoff_start + 1, set())

    games: list[MatchupDTO] = []
    for matchup_id, sides in grouped.items():
        home = sides[0]
        away = sides[1] if len(sides) > 1 else None
        refs = {str(home.get("roster_id"))}
        if away is not None:
            refs.add(str(away.get("roster_id")))
        is_consolation = bool(is_playoffs and winners_by_round and not (refs & round_teams))
        games.append(
            MatchupDTO(
                matchup_ref=matchup_id,
                home_team_ref=str(home.get("roster_id")),
                home_points=safe_float(home.get("points")),
                away_team_ref=ref(away.get("roster_id")) if away else None,
                away_points=safe_float(away.get("points")) if away else 0.0,
                is_playoffs=is_playoffs,
                is_consolation=is_consolation,
            )
        )
    return games


def parse_draft(
    draft: dict[str, Any],
    picks: list[dict[str, Any]],
    name_cache: Optional[TimedCache] = None,
) -> dict[str, Any]:
    settings = draft.get("settings") if isinstance(draft.get("settings"), dict) else {}
    parsed_picks = []
    for pick in picks or []:
        if not isinstance(pick, dict):
            continue
        metadata = pick.get("metadata") if isinstance(pick.get("metadata"), dict) else {}
        name = None
        if metadata.get("first_name") and metadata.get("last_name"):
            name = f"{metadata['first_name']} {metadata['last_name']}"
        parsed_picks.append(
            {
                "round": safe_int(pick.get("round")),
                "pick": safe_int(pick.get("pick_no")),
                "teamRef": ref(pick.get("roster_id")),
                "playerId": ref(pick.get("player_id")),
                "playerName": name or _player_name(pick.get("player_id"), name_cache),
                "position": metadata.get("position"),
                "amount": metadata.get("amount"),
            }
        )
    return {
        "type": draft.get("type"),
        "rounds": settings.get("rounds"),
        "picks": parsed_picks,
    }


def parse_transactions(week: int, transactions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    parsed = []
    for txn in transactions or []:
        if not isinstance(txn, dict):
            continue
        parsed.append(
            {
                "id": ref(txn.get("transaction_id")),
                "week": week,
                "type": txn.get("type"),
                "status": txn.get("status"),
                "timestamp": txn.get("created"),
                "teamRefs": [str(r) for r in txn.get("roster_ids") or []],
                "adds": txn.get("adds") or {},
                "drops": txn.get("drops") or {},
            }
        )
    return parsed
