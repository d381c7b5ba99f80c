from __future__ import annotations

import unittest

from fakes import FakeFetcher, fast_settings

from vault.ingestion.errors import AuthError, FetchError, NotFoundError, RateLimitError
from vault.ingestion.espn import EspnAdapter
from vault.ingestion.schema import EspnCookies, SeasonRef


def _year(url: str) -> int:
    return int(url.split("/seasons/", 1)[1].split("/", 1)[0])


def _settings_payload(year: int) -> dict:
    return {
        "settings": {
            "name": f"Office League {year}",
            "size": 10,
            "scoringSettings": {"scoringType": "H2H_POINTS"},
            "scheduleSettings": {"matchupPeriodCount": 14},
        }
    }


TEAMS = {
    "members": [
        {"id": "{A}", "displayName": "alice"},
        {"id": "{B}", "displayName": "bruno"},
        {"id": "{C}", "firstName": "Cora"},
        {"id": "{D}", "displayName": "dev"},
    ],
    "teams": [
        {"id": 1, "location": "Austin", "nickname": "Aces", "primaryOwner": "{A}", "rankCalculatedFinal": 2, "playoffSeed": 1,
         "record": {"overall": {"wins": 11, "losses": 3, "ties": 0, "pointsFor": 1650.4, "pointsAgainst": 1400.2}},
         "roster": {"entries": [{"playerId": 99, "playerPoolEntry": {"player": {"fullName": "Ja'Marr Chase", "defaultPositionId": 3}}}]}},
        {"id": 2, "name": "Boston Bombers", "owners": ["{B}"], "rankCalculatedFinal": 1, "playoffSeed": 2,
         "record": {"overall": {"wins": 10, "losses": 4, "ties": 0, "pointsFor": 1600.0, "pointsAgainst": 1500.0}}},
        {"id": 3, "name": "Chicago Crush", "primaryOwner": "{C}",
         "record": {"overall": {"wins": 6, "losses": 8, "ties": 0, "pointsFor": 1400.0, "pointsAgainst": 1450.0}}},
        {"id": 4, "name": "Denver Dogs", "primaryOwner": "{D}",
         "record": {"overall": {"wins": 3, "losses": 11, "ties": 0, "pointsFor": 1300.0, "pointsAgainst": 1600.0}}},
    ],
}

SCHEDULE = {
    "schedule": [
        {"id": 1, "matchupPeriodId": 1, "playoffTierType": "NONE", "winner": "HOME",
         "home": {"teamId": 1, "totalPoints": 120.5}, "away": {"teamId": 2, "totalPoints": 101.0}},
        {"id": 2, "matchupPeriodId": 1, "playoffTierType": "NONE", "winner": "AWAY",
         "home": {"teamId": 3, "totalPoints": 90.0}, "away": {"teamId": 4, "totalPoints": 95.0}},
        {"id": 3, "matchupPeriodId": 15, "playoffTierType": "WINNERS_BRACKET", "winner": "AWAY",
         "home": {"teamId": 1, "totalPoints": 110.0}, "away": {"teamId": 2, "totalPoints": 130.0}},
        {"id": 4, "matchupPeriodId": 15, "playoffTierType": "LOSERS_CONSOLATION_LADDER", "winner": "HOME",
         "home": {"teamId": 3, "totalPoints": 100.0}, "away": {"teamId": 4, "totalPoints": 80.0}},
    ]
}


class EspnDiscoveryTests(unittest.IsolatedAsyncioTestCase):
    async def test_discover_collects_every_year_with_data_ascending(self) -> None:
        def handler(url, params, headers):
            year = _year(url)
            if year < 2019:
                raise KeyError(year)
            return _settings_payload(year)

        fetcher = FakeFetcher(handler)
        adapter = EspnAdapter(current_year=2023, settings=fast_settings(espn_first_year=2018), fetcher=fetcher)

        discovery = await adapter.discover("12345", EspnCookies(espn_s2="s2", swid="{SWID}"))

        self.assertEqual([2019, 2020, 2021, 2022, 2023], [s.year for s in discovery.seasons])
        self.assertEqual("Office League 2023", discovery.name)
        self.assertEqual(10, discovery.seasons[0].team_count)
        self.assertEqual(6, len(fetcher.calls))
        self.assertEqual("mSettings", fetcher.calls[0]["params"]["view"])
        self.assertEqual("espn_s2=s2; SWID={SWID}", fetcher.calls[0]["headers"]["Cookie"])

    async def test_auth_failure_aborts_discovery(self) -> None:
        def handler(url, params, headers):
            raise AuthError("ESPN authentication failed", provider="espn", status=401)

        fetcher = FakeFetcher(handler)
        adapter = EspnAdapter(current_year=2023, settings=fast_settings(), fetcher=fetcher)

        with self.assertRaises(AuthError):
            await adapter.discover("12345")

        self.assertEqual(1, len(fetcher.calls))

    async def test_no_seasons_raises_not_found(self) -> None:
        adapter = EspnAdapter(
            current_year=2020,
            settings=fast_settings(espn_first_year=2018),
            fetcher=FakeFetcher(lambda *_: {}),
        )

        with self.assertRaises(NotFoundError):
            await adapter.discover("12345")

    async def test_rate_limit_before_any_season_is_reported(self) -> None:
        def handler(url, params, headers):
            raise RateLimitError("slow down", provider="espn", status=429)

        adapter = EspnAdapter(current_year=2023, settings=fast_settings(), fetcher=FakeFetcher(handler))

        with self.assertRaises(RateLimitError):
            await adapter.discover("12345")


class EspnImportTests(unittest.IsolatedAsyncioTestCase):
    async def test_import_season_maps_teams_schedule_and_tier_results(self) -> None:
        def handler(url, params, headers):
            view = params["view"]
            if view == "mTeam":
                return TEAMS
            if view == "mMatchup":
                return SCHEDULE
            if view == "mDraftDetail":
                raise FetchError("draft view unavailable", provider="espn")
            return {"transactions": []}

        adapter = EspnAdapter(settings=fast_settings(), fetcher=FakeFetcher(handler))

        data = await adapter.import_season(SeasonRef(year=2022, ref="12345", team_count=4), 2022)

        self.assertEqual(["1", "2", "3", "4"], [r.team_ref for r in data.rosters])
        self.assertEqual("Austin Aces", data.rosters[0].team_name)
        self.assertEqual("alice", data.rosters[0].owner_name)
        self.assertEqual("bruno", data.rosters[1].owner_name)
        self.assertEqual("Cora", data.rosters[2].owner_name)
        self.assertEqual(2, data.rosters[0].rank)
        self.assertEqual("WR", data.rosters[0].roster["players"][0]["position"])

        self.assertEqual([1, 15], sorted(data.matchups))
        final = {g.home_team_ref: g for g in data.matchups[15]}
        self.assertTrue(final["1"].is_playoffs)
        self.assertFalse(final["1"].is_consolation)
        self.assertTrue(final["3"].is_consolation)

        self.assertEqual("champion", data.playoff_results["2"])
        self.assertEqual("eliminated", data.playoff_results["1"])
        self.assertEqual("eliminated", data.playoff_results["4"])
        self.assertIsNone(data.draft_data)
        self.assertEqual([], data.transactions)

    async def test_team_view_failure_is_fatal(self) -> None:
        def handler(url, params, headers):
            if params["view"] == "mTeam":
                raise FetchError("espn API error 400", provider="espn", status=400)
            return {}

        adapter = EspnAdapter(settings=fast_settings(), fetcher=FakeFetcher(handler))

        with self.assertRaises(FetchError):
            await adapter.import_season(SeasonRef(year=2022, ref="12345"), 2022)


if __name__ == "__main__":
    unittest.main()
