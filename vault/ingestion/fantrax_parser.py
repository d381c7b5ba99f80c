"""Parser for Fantrax standings and draft CSV exports."""

from __future__ import annotations

import csv
import io
from typing import Any, Optional, Sequence

from vault.ingestion.normalize import order_by_rank, safe_float, safe_int
from vault.ingestion.schema import TeamSeasonDTO

TEAM_ALIASES = ("team", "team name", "name")
OWNER_ALIASES = ("manager", "owner")
RANK_ALIASES = ("rank", "#", "pos", "position", "standing")
WINS_ALIASES = ("w", "wins", "win")
LOSSES_ALIASES = ("l", "losses", "loss")
TIES_ALIASES = ("t", "ties", "tie", "draw")
PA_ALIASES = ("pa", "points against", "pts against", "fpts against")
PF_ALIASES = ("pf", "points for", "fpts", "pts", "points", "total points")

ROUND_ALIASES = ("round", "rd")
PICK_ALIASES = ("pick", "overall", "#")
PLAYER_ALIASES = ("player", "player name", "name")


class CsvFormatError(ValueError):
    pass


def read_rows(text: str) -> tuple[list[str], list[list[str]]]:
    reader = csv.reader(io.StringIO((text or "").strip()))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise CsvFormatError("CSV file appears empty")
    headers = [cell.strip().strip('"').lower() for cell in rows[0]]
    return headers, rows[1:]


def find_column(headers: Sequence[str], aliases: Sequence[str], taken: set[int]) -> int:
    """Exact alias match first, then a header starting with an alias. -1 if absent."""
    for alias in aliases:
        for index, header in enumerate(headers):
            if index not in taken and header == alias:
                taken.add(index)
                return index
    for alias in aliases:
        if len(alias) < 2:
            continue
        for index, header in enumerate(headers):
            if index not in taken and header.startswith(alias):
                taken.add(index)
                return index
    return -1


def _cell(row: Sequence[str], index: int) -> Optional[str]:
    if index < 0 or index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def parse_standings(text: str) -> list[TeamSeasonDTO]:
    headers, rows = read_rows(text)
    taken: set[int] = set()
    owner_col = find_column(headers, OWNER_ALIASES, taken)
    team_col = find_column(headers, TEAM_ALIASES, taken)
    rank_col = find_column(headers, RANK_ALIASES, taken)
    wins_col = find_column(headers, WINS_ALIASES, taken)
    losses_col = find_column(headers, LOSSES_ALIASES, taken)
    ties_col = find_column(headers, TIES_ALIASES, taken)
    pa_col = find_column(headers, PA_ALIASES, taken)
    pf_col = find_column(headers, PF_ALIASES, taken)

    if team_col == -1 and owner_col == -1:
        raise CsvFormatError(
            'Could not find team/manager column in CSV. Expected column named "Team", "Manager", or "Owner".'
        )

    teams: list[TeamSeasonDTO] = []
    for position, row in enumerate(rows, start=1):
        if len(row) < 2:
            continue
        team_name = _cell(row, team_col) or _cell(row, owner_col) or f"Team {position}"
        teams.append(
            TeamSeasonDTO(
                team_ref=str(position),
                team_name=team_name,
                owner_name=_cell(row, owner_col) or team_name,
                wins=safe_int(_cell(row, wins_col)),
                losses=safe_int(_cell(row, losses_col)),
                ties=safe_int(_cell(row, ties_col)),
                points_for=safe_float((_cell(row, pf_col) or "").replace(",", "")),
                points_against=safe_float((_cell(row, pa_col) or "").replace(",", "")),
                rank=safe_int(_cell(row, rank_col), position) or position,
            )
        )
    return order_by_rank(teams)


def parse_draft(text: Optional[str]) -> Optional[dict[str, Any]]:
    if not text:
        return None
    try:
        headers, rows = read_rows(text)
    except CsvFormatError:
        return None
    taken: set[int] = set()
    round_col = find_column(headers, ROUND_ALIASES, taken)
    pick_col = find_column(headers, PICK_ALIASES, taken)
    team_col = find_column(headers, TEAM_ALIASES + OWNER_ALIASES, taken)
    player_col = find_column(headers, PLAYER_ALIASES, taken)
    pos_col = find_column(headers, ("pos", "position"), taken)

    picks = []
    for index, row in enumerate(rows, start=1):
        if len(row) < 2:
            continue
        picks.append(
            {
                "round": safe_int(_cell(row, round_col)),
                "pick": safe_int(_cell(row, pick_col), index) or index,
                "teamName": _cell(row, team_col),
                "playerName": _cell(row, player_col),
                "position": _cell(row, pos_col),
            }
        )
    return {"type": "snake", "picks": picks}
