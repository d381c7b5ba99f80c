from __future__ import annotations

import unittest

from vault.ingestion.cache import TimedCache


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TimedCacheTests(unittest.TestCase):
    def test_loads_once_until_ttl_passes(self) -> None:
        clock = _Clock()
        loads = []

        def _load():
            loads.append(clock.now)
            return {"4046": {"full_name": "Patrick Mahomes"}}

        cache = TimedCache(_load, 100, clock=clock)

        self.assertEqual("Patrick Mahomes", cache.get(4046)["full_name"])
        clock.now = 50
        cache.get("4046")
        self.assertEqual(1, len(loads))

        clock.now = 150
        cache.get("4046")
        self.assertEqual(2, len(loads))

    def test_warm_loads_only_when_stale(self) -> None:
        clock = _Clock()
        loads = []

        def _load():
            loads.append(clock.now)
            return {"1": "Player One"}

        cache = TimedCache(_load, 10, clock=clock)
        cache.warm()
        cache.warm()
        self.assertEqual("Player One", cache.get("1"))
        self.assertEqual(1, len(loads))

        clock.now = 11
        cache.warm()
        self.assertEqual(2, len(loads))

    def test_failed_reload_keeps_previous_table(self) -> None:
        clock = _Clock()
        calls = {"n": 0}

        def _load():
            calls["n"] += 1
            if calls["n"] > 1:
                raise RuntimeError("players endpoint down")
            return {"1": "Player One"}

        cache = TimedCache(_load, 10, clock=clock)
        cache.get("1")
        clock.now = 20

        with self.assertLogs("vault.ingestion.cache", level="ERROR"):
            self.assertEqual("Player One", cache.get("1"))

    def test_first_load_failure_gives_empty_table(self) -> None:
        def _load():
            raise RuntimeError("boom")

        cache = TimedCache(_load, 10)

        with self.assertLogs("vault.ingestion.cache", level="ERROR"):
            self.assertIsNone(cache.get("1"))


if __name__ == "__main__":
    unittest.main()
