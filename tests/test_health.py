from __future__ import annotations

import unittest

from fakes import make_session

from vault.health import analyze_league_health, analyze_seasons, expected_game_range, status_for
from vault.ingestion.store import ImportStore


def _clean_season(year: int, teams: int = 10, *, owners=None) -> list[dict]:
    owners = owners or [f"Owner {i}" for i in range(teams)]
    rows = []
    for index, owner in enumerate(owners):
        rows.append(
            {
                "season_year": year,
                "team_name": f"{owner} FC",
                "owner_name": owner,
                "wins": 13 - index % 14,
                "losses": index % 14,
                "ties": 0,
                "points_for": 1400.0 + index * 10,
                "points_against": 1400.0,
                "playoff_result": "champion" if index == 0 else "missed",
                "weekly_scores": [{"week": 1, "points": 100.0}],
            }
        )
    return rows


class HealthHelperTests(unittest.TestCase):
    def test_expected_game_range_by_era(self) -> None:
        self.assertEqual((13, 17), expected_game_range(2023))
        self.assertEqual((12, 16), expected_game_range(2010))
        self.assertEqual((10, 16), expected_game_range(1998))

    def test_status_thresholds(self) -> None:
        self.assertEqual("green", status_for(80))
        self.assertEqual("yellow", status_for(50))
        self.assertEqual("red", status_for(49))


class AnalyzeSeasonsTests(unittest.TestCase):
    def test_empty_history_is_healthy(self) -> None:
        report = analyze_seasons([], current_year=2024)

        self.assertEqual(100, report["overall_score"])
        self.assertEqual(0, report["season_count"])

    def test_clean_history_scores_full_marks(self) -> None:
        rows = _clean_season(2022) + _clean_season(2023)

        report = analyze_seasons(rows, current_year=2024)

        self.assertEqual(100, report["overall_score"])
        self.assertEqual("green", report["overall_status"])
        self.assertEqual([2022, 2023], report["year_range"])
        self.assertEqual([], report["issues"])

    def test_gaps_are_reported_as_missing_seasons(self) -> None:
        rows = _clean_season(2015) + _clean_season(2017) + _clean_season(2021)

        report = analyze_seasons(rows, current_year=2024)

        self.assertEqual([2016, 2018, 2019, 2020], report["missing_years"])
        missing = [issue for issue in report["issues"] if issue["type"] == "MISSING_SEASON"]
        self.assertEqual(4, len(missing))
        self.assertTrue(all(issue["severity"] == "high" for issue in missing))
        self.assertEqual("ADD_SEASON", missing[0]["repair_action"])
        self.assertEqual(0, report["per_season"][2016]["score"])
        self.assertEqual("red", report["per_season"][2016]["status"])
        self.assertEqual(100, report["per_season"][2015]["score"])
        # Seven years average to 43, and the gap count outnumbers the stored seasons.
        self.assertEqual(28, report["overall_score"])
        self.assertEqual("red", report["overall_status"])

    def test_season_without_points_is_high_severity(self) -> None:
        rows = _clean_season(2022)
        for row in rows:
            row["points_for"] = 0

        report = analyze_seasons(rows, current_year=2024)

        zero = [issue for issue in report["issues"] if issue["type"] == "ZERO_POINTS"]
        self.assertEqual(1, len(zero))
        self.assertEqual("high", zero[0]["severity"])
        self.assertLessEqual(report["overall_score"], 70)
        self.assertEqual(70, report["per_season"][2022]["score"])

    def test_partial_zero_points_is_medium(self) -> None:
        rows = _clean_season(2022)
        rows[3]["points_for"] = 0
        rows[4]["points_for"] = 0

        report = analyze_seasons(rows, current_year=2024)

        zero = [issue for issue in report["issues"] if issue["type"] == "ZERO_POINTS"]
        self.assertEqual("medium", zero[0]["severity"])
        self.assertIn("2 teams have 0 points", zero[0]["message"])

    def test_current_and_future_seasons(self) -> None:
        rows = _clean_season(2024) + _clean_season(2025)
        for row in rows:
            row["playoff_result"] = None

        report = analyze_seasons(rows, current_year=2024)

        types = {(issue["type"], issue["season_year"]) for issue in report["issues"]}
        self.assertIn(("CURRENT_YEAR_PARTIAL", 2024), types)
        self.assertIn(("FUTURE_SEASON", 2025), types)
        self.assertNotIn(("NO_CHAMPION", 2024), types)

    def test_multiple_champions_and_team_count_anomaly(self) -> None:
        rows = _clean_season(2020) + _clean_season(2021) + _clean_season(2022, teams=6)
        rows[1]["playoff_result"] = "champion"

        report = analyze_seasons(rows, current_year=2024)

        types = {(issue["type"], issue["season_year"]) for issue in report["issues"]}
        self.assertIn(("MULTIPLE_CHAMPIONS", 2020), types)
        self.assertIn(("TEAM_COUNT_ANOMALY", 2022), types)

    def test_game_count_anomaly_flagged_once_per_season(self) -> None:
        rows = _clean_season(2022)
        rows[0]["wins"], rows[0]["losses"] = 20, 5
        rows[1]["wins"], rows[1]["losses"] = 20, 5

        report = analyze_seasons(rows, current_year=2024)

        anomalies = [issue for issue in report["issues"] if issue["type"] == "GAME_COUNT_ANOMALY"]
        self.assertEqual(1, len(anomalies))
        self.assertIn("(expected 13-17)", anomalies[0]["message"])

    def test_systemic_issues_cost_extra(self) -> None:
        rows = []
        for year in (2019, 2020, 2021):
            season = _clean_season(year)
            for row in season:
                row["weekly_scores"] = None
            rows.extend(season)

        report = analyze_seasons(rows, current_year=2024)

        self.assertEqual(85, report["per_season"][2019]["score"])
        # 85 average, minus 15 because every season is missing weekly scores.
        self.assertEqual(70, report["overall_score"])

    def test_orphan_owners_are_informational(self) -> None:
        rows = (
            _clean_season(2020, owners=["A", "B", "C", "D"])
            + _clean_season(2021, owners=["A", "B", "C", "D"])
            + _clean_season(2022, owners=["A", "B", "C", "Zed"])
        )

        report = analyze_seasons(rows, current_year=2024)

        orphans = [issue for issue in report["issues"] if issue["type"] == "ORPHAN_OWNER"]
        self.assertEqual(["info"], [issue["severity"] for issue in orphans])
        self.assertIn("\"Zed\"", orphans[0]["message"])
        self.assertIsNone(orphans[0]["season_year"])
        self.assertEqual(100, report["overall_score"])


class AnalyzeLeagueHealthTests(unittest.TestCase):
    def test_aliases_merge_owners_before_analysis(self) -> None:
        db = make_session()
        store = ImportStore(db)
        league = store.find_or_create_league("u1", "Aliased", sport="nfl", provider="espn", league_ref="1")
        for year, owners in ((2020, ["A", "B", "C", "D"]), (2021, ["A", "B", "C", "D"]), (2022, ["A", "B", "C", "dee"])):
            records = [
                {**row, "league_id": league.id, "final_standing": standing}
                for standing, row in enumerate(_clean_season(year, owners=owners), start=1)
            ]
            store.replace_season(league.id, year, records)

        before = analyze_league_health(db, league.id, current_year=2024)
        store.replace_owner_aliases(league.id, {"dee": "D"})
        after = analyze_league_health(db, league.id, current_year=2024)
        db.close()

        self.assertTrue(any(issue["type"] == "ORPHAN_OWNER" for issue in before["issues"]))
        self.assertFalse(any(issue["type"] == "ORPHAN_OWNER" for issue in after["issues"]))
        self.assertEqual(3, after["season_count"])


if __name__ == "__main__":
    unittest.main()
