from __future__ import annotations

import unittest

from vault.ingestion.yahoo_parser import (
    fallback_game_keys,
    owner_label,
    parse_game_keys,
    parse_league_meta,
    parse_scoreboard,
    parse_standings,
    pointer_to_key,
)


def _team_node(key: str, name: str, nickname: str, *, rank: str, wins: str, points: str) -> dict:
    return {
        "team": [
            [
                {"team_key": key},
                {"team_id": key.rsplit(".", 1)[-1]},
                {"name": name},
                {"managers": [{"manager": {"nickname": nickname, "guid": f"guid-{name}"}}]},
            ],
            {
                "team_standings": {
                    "rank": rank,
                    "playoff_seed": rank,
                    "outcome_totals": {"wins": wins, "losses": "3", "ties": "0"},
                    "points_for": points,
                    "points_against": "1200.25",
                }
            },
        ]
    }


class YahooParserTests(unittest.TestCase):
    def test_pointer_to_key_converts_renew_values(self) -> None:
        self.assertEqual("390.l.123456", pointer_to_key("390_123456"))
        self.assertIsNone(pointer_to_key(""))
        self.assertIsNone(pointer_to_key("390"))

    def test_owner_label_falls_back_to_team_name_for_hidden_managers(self) -> None:
        team = {"name": "Gridiron Gang", "managers": [{"manager": {"nickname": "--hidden--"}}]}

        self.assertEqual("Gridiron Gang", owner_label(team))

    def test_parse_game_keys_reads_nested_user_games_newest_first(self) -> None:
        payload = {
            "fantasy_content": {
                "users": {
                    "0": {
                        "user": [
                            {"guid": "abc"},
                            {
                                "games": {
                                    "0": {"game": [{"game_key": "414", "code": "nfl", "season": "2022"}]},
                                    "1": {"game": [{"game_key": "423", "code": "nfl", "season": "2023"}]},
                                    "2": {"game": [{"game_key": "422", "code": "nba", "season": "2023"}]},
                                    "count": 3,
                                }
                            },
                        ]
                    },
                    "count": 1,
                }
            }
        }

        self.assertEqual([(2023, "423"), (2022, "414")], parse_game_keys(payload))

    def test_fallback_table_is_newest_first(self) -> None:
        keys = fallback_game_keys()

        self.assertGreater(keys[0][0], keys[-1][0])

    def test_parse_league_meta_merges_fragments(self) -> None:
        payload = {
            "fantasy_content": {
                "league": [
                    {
                        "league_key": "423.l.777",
                        "name": "Sunday Funday",
                        "season": "2023",
                        "num_teams": 10,
                        "renew": "414_555",
                        "renewed": "",
                    },
                    {"settings": [{"playoff_start_week": "15"}]},
                ]
            }
        }

        meta = parse_league_meta(payload)

        self.assertEqual("423.l.777", meta["league_key"])
        self.assertEqual(2023, meta["season"])
        self.assertEqual(10, meta["num_teams"])
        self.assertEqual("414.l.555", meta["renew"])
        self.assertIsNone(meta["renewed"])
        self.assertEqual({"playoff_start_week": "15"}, meta["settings"]["settings"])

    def test_parse_standings_orders_by_rank_and_keys_by_team_key(self) -> None:
        payload = {
            "fantasy_content": {
                "league": [
                    {"league_key": "423.l.777"},
                    {
                        "standings": [
                            {
                                "teams": {
                                    "0": _team_node("423.l.777.t.2", "Bravo", "Bob", rank="2", wins="9", points="1400.5"),
                                    "1": _team_node("423.l.777.t.1", "Alpha", "--hidden--", rank="1", wins="10", points="1500"),
                                    "count": 2,
                                }
                            }
                        ]
                    },
                ]
            }
        }

        teams = parse_standings(payload)

        self.assertEqual(["423.l.777.t.1", "423.l.777.t.2"], [t.team_ref for t in teams])
        self.assertEqual("Alpha", teams[0].owner_name)
        self.assertEqual("Bob", teams[1].owner_name)
        self.assertEqual(10, teams[0].wins)
        self.assertAlmostEqual(1400.5, teams[1].points_for)
        self.assertEqual(1, teams[0].rank)

    def test_parse_scoreboard_reads_playoff_and_consolation_flags(self) -> None:
        def side(key: str, total: str) -> dict:
            return {"team": [[{"team_key": key}], {"team_points": {"total": total}}]}

        payload = {
            "fantasy_content": {
                "league": [
                    {"league_key": "423.l.777"},
                    {
                        "scoreboard": {
                            "0": {
                                "matchups": {
                                    "0": {
                                        "matchup": {
                                            "is_playoffs": "1",
                                            "is_consolation": "1",
                                            "0": {"teams": {"0": side("t.1", "101.5"), "1": side("t.2", "99"), "count": 2}},
                                        }
                                    },
                                    "count": 1,
                                }
                            },
                            "week": "15",
                        }
                    },
                ]
            }
        }

        games = parse_scoreboard(payload)

        self.assertEqual(1, len(games))
        self.assertEqual("t.1", games[0].home_team_ref)
        self.assertAlmostEqual(101.5, games[0].home_points)
        self.assertTrue(games[0].is_playoffs)
        self.assertTrue(games[0].is_consolation)


if __name__ == "__main__":
    unittest.main()
