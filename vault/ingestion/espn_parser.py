"""Parser for ESPN fantasy football league views."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from vault.ingestion.normalize import (
    NO_TIER,
    WINNERS_BRACKET,
    order_by_record,
    optional_int,
    ref,
    safe_float,
    safe_int,
)
from vault.ingestion.schema import MatchupDTO, TeamSeasonDTO

POSITIONS: dict[int, str] = {
    1: "QB",
    2: "RB",
    3: "WR",
    4: "TE",
    5: "K",
    16: "D/ST",
}


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_season_ref(payload: Any) -> dict[str, Any] | None:
    """Return name/size/snapshot for an mSettings payload, or None if the season is empty."""
    data = _dict(payload)
    settings = data.get("settings")
    if not isinstance(settings, dict):
        return None
    return {
        "name": settings.get("name"),
        "team_count": optional_int(settings.get("size")),
        "settings": {
            "scoring": settings.get("scoringSettings"),
            "schedule": settings.get("scheduleSettings"),
            "draft": settings.get("draftSettings"),
            "roster": settings.get("rosterSettings"),
        },
    }


def _member_names(members: Any) -> dict[str, str]:
    names: dict[str, str] = {}
    for member in members or []:
        if not isinstance(member, dict) or member.get("id") is None:
            continue
        names[str(member["id"])] = member.get("displayName") or member.get("firstName") or "Unknown"
    return names


def _team_name(team: dict[str, Any]) -> str:
    if team.get("name"):
        return team["name"]
    # Pre-2020 payloads split the name into location/nickname.
    joined = " ".join(part for part in (team.get("location"), team.get("nickname")) if part)
    return joined or team.get("abbrev") or f"Team {team.get('id')}"


def _roster_entries(team: dict[str, Any]) -> list[dict[str, Any]]:
    entries = []
    for entry in _dict(team.get("roster")).get("entries") or []:
        if not isinstance(entry, dict):
            continue
        player = _dict(_dict(entry.get("playerPoolEntry")).get("player"))
        player_id = entry.get("playerId")
        entries.append(
            {
                "playerId": ref(player_id),
                "playerName": player.get("fullName") or f"Player {player_id}",
                "position": POSITIONS.get(safe_int(player.get("defaultPositionId"), -1)),
            }
        )
    return entries


def parse_teams(payload: Any) -> list[TeamSeasonDTO]:
    data = _dict(payload)
    members = _member_names(data.get("members"))
    parsed: list[TeamSeasonDTO] = []
    for team in data.get("teams") or []:
        if not isinstance(team, dict) or team.get("id") is None:
            continue
        owners = team.get("owners") or []
        owner_id = team.get("primaryOwner") or (owners[0] if owners else None)
        record = _dict(_dict(team.get("record")).get("overall"))
        parsed.append(
            TeamSeasonDTO(
                team_ref=str(team["id"]),
                team_name=_team_name(team),
                owner_name=members.get(str(owner_id), f"Team {team['id']}"),
                owner_ref=ref(owner_id),
                wins=safe_int(record.get("wins")),
                losses=safe_int(record.get("losses")),
                ties=safe_int(record.get("ties")),
                points_for=safe_float(record.get("pointsFor") or team.get("points")),
                points_against=safe_float(record.get("pointsAgainst")),
                rank=optional_int(team.get("rankCalculatedFinal")) or None,
                playoff_seed=optional_int(team.get("playoffSeed")) or None,
                roster={"players": _roster_entries(team)},
            )
        )
    return order_by_record(parsed)


def _winner_ref(game: dict[str, Any]) -> str | None:
    side = {"HOME": "home", "AWAY": "away"}.get(game.get("winner") or "")
    if side is None:
        return None
    return ref(_dict(game.get(side)).get("teamId"))


def parse_schedule(payload: Any) -> tuple[dict[int, list[MatchupDTO]], list[dict[str, Any]]]:
    """Return (week -> games, tiered games for playoff derivation)."""
    weeks: dict[int, list[MatchupDTO]] = defaultdict(list)
    tier_games: list[dict[str, Any]] = []
    for game in _dict(payload).get("schedule") or []:
        if not isinstance(game, dict):
            continue
        week = safe_int(game.get("matchupPeriodId"))
        home = _dict(game.get("home"))
        away = _dict(game.get("away"))
        if not week or home.get("teamId") is None:
            continue
        tier = game.get("playoffTierType") or NO_TIER
        weeks[week].append(
            MatchupDTO(
                matchup_ref=ref(game.get("id")),
                home_team_ref=str(home["teamId"]),
                home_points=safe_float(home.get("totalPoints")),
                away_team_ref=ref(away.get("teamId")),
                away_points=safe_float(away.get("totalPoints")),
                is_playoffs=tier != NO_TIER,
                is_consolation=tier not in (NO_TIER, WINNERS_BRACKET),
            )
        )
        tier_games.append(
            {
                "tier": tier,
                "home": ref(home.get("teamId")),
                "away": ref(away.get("teamId")),
                "winner": _winner_ref(game),
            }
        )
    return dict(weeks), tier_games


def parse_draft(payload: Any) -> dict[str, Any] | None:
    detail = _dict(_dict(payload).get("draftDetail"))
    picks = detail.get("picks")
    if not isinstance(picks, list):
        return None
    return {
        "type": "snake" if detail.get("drafted") else "unknown",
        "picks": [
            {
                "round": safe_int(pick.get("roundId")),
                "pick": safe_int(pick.get("overallPickNumber")),
                "teamRef": ref(pick.get("teamId")),
                "playerId": ref(pick.get("playerId")),
                "playerName": pick.get("playerName"),
                "keeper": bool(pick.get("keeper")),
                "amount": pick.get("bidAmount"),
            }
            for pick in picks
            if isinstance(pick, dict)
        ],
    }


def parse_transactions(payload: Any) -> list[dict[str, Any]]:
    parsed = []
    for txn in _dict(payload).get("transactions") or []:
        if not isinstance(txn, dict):
            continue
        parsed.append(
            {
                "id": ref(txn.get("id")),
                "week": optional_int(txn.get("scoringPeriodId")),
                "type": txn.get("type"),
                "status": txn.get("status"),
                "timestamp": txn.get("proposedDate"),
                "teamRefs": [ref(txn.get("teamId"))] if txn.get("teamId") is not None else [],
                "items": [
                    {
                        "type": item.get("type"),
                        "playerId": ref(item.get("playerId")),
                        "fromTeamRef": ref(item.get("fromTeamId")),
                        "toTeamRef": ref(item.get("toTeamId")),
                    }
                    for item in txn.get("items") or []
                    if isinstance(item, dict)
                ],
            }
        )
    return parsed
