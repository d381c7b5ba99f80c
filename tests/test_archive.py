from __future__ import annotations

import unittest

from fakes import make_session_factory

from vault.ingestion.archive import RawArchiveWriter
from vault.models import RawProviderData


class RawArchiveWriterTests(unittest.IsolatedAsyncioTestCase):
    async def test_write_failure_is_logged_and_swallowed(self) -> None:
        def _sink(record):
            raise RuntimeError("archive table locked")

        writer = RawArchiveWriter(sink=_sink)

        with self.assertLogs("vault.ingestion.archive", level="ERROR") as logs:
            writer.submit("sleeper", "rosters", "L1", [{"roster_id": 1}])
            await writer.drain()

        self.assertIn("Failed to archive raw sleeper/rosters", logs.output[0])

    async def test_writes_rows_to_database(self) -> None:
        factory = make_session_factory()
        writer = RawArchiveWriter(factory)

        writer.submit("espn", "mTeam", "12345:2022", {"teams": [1, 2, 3]})
        await writer.drain()
        writer.submit("espn", "mMatchup", 12345, [1, 2], record_count=9)
        await writer.drain()

        with factory() as db:
            rows = db.query(RawProviderData).order_by(RawProviderData.data_type).all()
        self.assertEqual(["mMatchup", "mTeam"], [row.data_type for row in rows])
        self.assertEqual("12345", rows[0].event_ref)
        self.assertEqual(9, rows[0].record_count)
        self.assertEqual(1, rows[1].record_count)
        self.assertIsNone(rows[1].processed_at)


class RawArchiveWriterSyncTests(unittest.TestCase):
    def test_submit_outside_event_loop_writes_inline(self) -> None:
        seen = []
        writer = RawArchiveWriter(sink=seen.append)

        writer.submit("mfl", "league", "60001:2022", None)

        self.assertEqual(1, len(seen))
        self.assertIsNone(seen[0].record_count)

    def test_requires_a_destination(self) -> None:
        with self.assertRaises(ValueError):
            RawArchiveWriter()


if __name__ == "__main__":
    unittest.main()
