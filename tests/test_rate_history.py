# tests/test_rate_history.py

"""Tests for the bounded in-memory rate history."""

import unittest
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from ibja_rates.models.rate_snapshot import RateSnapshot
from ibja_rates.storage.rate_history import RateHistory, default_clock

IST = ZoneInfo("Asia/Kolkata")


class _Clock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def _snapshot(ts: datetime, metal: str = "gold") -> RateSnapshot:
    return RateSnapshot.capture({"lblGold999_AM": "72,500"}, metal, ts)


class TestIngest(unittest.TestCase):
    """Recording snapshots and enforcing capacity."""

    def setUp(self) -> None:
        self.clock = _Clock(datetime(2025, 3, 10, 9, 30, tzinfo=IST))
        self.history = RateHistory(clock=self.clock, max_size=5)

    def test_ingest_stamps_clock_time(self) -> None:
        """Snapshot date, time and session derive from the clock."""
        snap = self.history.ingest({"lblGold999_AM": "72,500"})
        self.assertEqual(snap.date, "2025-03-10")
        self.assertEqual(snap.time, "09:30:00")
        self.assertEqual(snap.capture_session, "AM")
        self.assertEqual(snap.metal_type, "gold")

    def test_ingest_copies_rates(self) -> None:
        """Mutating the caller's dict does not alter the snapshot."""
        raw = {"lblGold999_AM": "72,500"}
        snap = self.history.ingest(raw)
        raw["lblGold999_AM"] = "0"
        self.assertEqual(snap.rates["lblGold999_AM"], "72,500")

    def test_capacity_drops_oldest(self) -> None:
        """Past max_size the earliest snapshots are evicted."""
        for i in range(7):
            self.history.ingest({"lblGold999_AM": str(70000 + i)})
            self.clock.advance(minutes=1)

        self.assertEqual(len(self.history), 5)
        first = self.history.all()[0]
        self.assertEqual(first.rates["lblGold999_AM"], "70002")

    def test_default_capacity_is_one_thousand(self) -> None:
        """Without an override the store holds 1000 snapshots."""
        history = RateHistory(clock=self.clock)
        for _ in range(1001):
            history.ingest({"lblGold999_AM": "1"})
        self.assertEqual(history.max_size, 1000)
        self.assertEqual(len(history), 1000)

    def test_retains_last_thousand_in_order(self) -> None:
        """Overflowing the default capacity keeps exactly the newest 1000."""
        history = RateHistory(clock=self.clock)
        total = 1005
        for i in range(total):
            history.ingest({"lblGold999_AM": str(i)})
        self.assertEqual(
            [s.rates["lblGold999_AM"] for s in history.all()],
            [str(i) for i in range(total - 1000, total)],
        )

    def test_stored_rates_cannot_be_mutated(self) -> None:
        """Rates reached through queries are read-only views."""
        self.history.ingest({"lblGold999_AM": "72,500"})
        latest = self.history.latest()
        assert latest is not None
        with self.assertRaises(TypeError):
            latest.rates["lblGold999_AM"] = "999"  # type: ignore[index]
        with self.assertRaises(TypeError):
            self.history.all()[0].rates["extra"] = "1"  # type: ignore[index]
        self.assertEqual(
            dict(self.history.all()[0].rates), {"lblGold999_AM": "72,500"},
        )

    def test_all_returns_copy(self) -> None:
        """The list returned by all() is detached from the store."""
        self.history.ingest({"lblGold999_AM": "1"})
        entries = self.history.all()
        entries.clear()
        self.assertEqual(len(self.history), 1)

    def test_replace_overwrites(self) -> None:
        """replace() swaps the entire contents."""
        self.history.ingest({"lblGold999_AM": "1"})
        ts = self.clock.current - timedelta(days=1)
        self.history.replace([_snapshot(ts), _snapshot(ts)])
        self.assertEqual(len(self.history), 2)
        self.assertEqual(self.history.all()[0].timestamp, ts)


class TestQueries(unittest.TestCase):
    """Temporal lookups over stored snapshots."""

    def setUp(self) -> None:
        self.now = datetime(2025, 3, 10, 15, 0, tzinfo=IST)
        self.history = RateHistory(clock=lambda: self.now)

    def test_latest_filters_by_metal(self) -> None:
        """latest() ignores snapshots of other metals."""
        gold = _snapshot(self.now - timedelta(hours=2))
        silver = _snapshot(self.now - timedelta(hours=1), "silver")
        self.history.replace([gold, silver])
        self.assertIs(self.history.latest("gold"), gold)
        self.assertIs(self.history.latest("silver"), silver)
        self.assertIsNone(self.history.latest("platinum"))

    def test_as_of_returns_latest_old_enough(self) -> None:
        """as_of picks the newest snapshot at or before now - hours."""
        older = _snapshot(self.now - timedelta(hours=4))
        newer = _snapshot(self.now - timedelta(hours=2))
        self.history.replace([older, newer])

        self.assertIs(self.history.as_of(3), older)
        self.assertIs(self.history.as_of(1), newer)
        self.assertIsNone(self.history.as_of(5))

    def test_as_of_boundary_is_inclusive(self) -> None:
        """A snapshot exactly hours_ago old qualifies."""
        exact = _snapshot(self.now - timedelta(hours=24))
        self.history.replace([exact])
        self.assertIs(self.history.as_of(24), exact)

    def test_as_of_empty_history(self) -> None:
        """No snapshots means no result."""
        self.assertIsNone(self.history.as_of(24))

    def test_from_date_accepts_string_and_date(self) -> None:
        """from_date matches on the captured calendar date."""
        yesterday = _snapshot(self.now - timedelta(days=1))
        today = _snapshot(self.now - timedelta(hours=1))
        self.history.replace([yesterday, today])

        self.assertEqual(self.history.from_date("2025-03-09"), [yesterday])
        self.assertEqual(
            self.history.from_date(self.now.date()), [today],
        )

    def test_from_date_accepts_datetime(self) -> None:
        """A datetime matches the snapshots of its calendar date."""
        today = _snapshot(self.now - timedelta(hours=1))
        self.history.replace([today])
        self.assertEqual(self.history.from_date(self.now), [today])
        self.assertEqual(
            self.history.from_date(self.now),
            self.history.from_date(self.now.date()),
        )

    def test_today_uses_clock_date(self) -> None:
        """today() returns snapshots from the clock's current date."""
        yesterday = _snapshot(self.now - timedelta(days=1))
        morning = _snapshot(self.now.replace(hour=9))
        self.history.replace([yesterday, morning])
        self.assertEqual(self.history.today(), [morning])


class TestRetention(unittest.TestCase):
    """Purging snapshots past the retention window."""

    def setUp(self) -> None:
        self.now = datetime(2025, 3, 10, 12, 0, tzinfo=IST)
        self.history = RateHistory(clock=lambda: self.now)

    def test_clear_old_data_default_thirty_days(self) -> None:
        """Snapshots older than 30 days are dropped by default."""
        stale = _snapshot(self.now - timedelta(days=31))
        fresh = _snapshot(self.now - timedelta(days=29))
        self.history.replace([stale, fresh])

        removed = self.history.clear_old_data()

        self.assertEqual(removed, 1)
        self.assertEqual(self.history.all(), [fresh])

    def test_clear_old_data_custom_window(self) -> None:
        """An explicit window overrides the configured retention."""
        self.history.replace([
            _snapshot(self.now - timedelta(days=3)),
            _snapshot(self.now - timedelta(hours=1)),
        ])
        self.assertEqual(self.history.clear_old_data(2), 1)
        self.assertEqual(len(self.history), 1)

    def test_clear_old_data_keeps_cutoff(self) -> None:
        """A snapshot exactly at the cutoff survives."""
        edge = _snapshot(self.now - timedelta(days=30))
        self.history.replace([edge])
        self.assertEqual(self.history.clear_old_data(), 0)


class TestDefaultClock(unittest.TestCase):
    """The production clock is timezone-aware."""

    def test_default_clock_in_capture_timezone(self) -> None:
        """default_clock() carries the configured timezone."""
        now = default_clock()
        self.assertIsNotNone(now.tzinfo)
        self.assertEqual(now.utcoffset(), timedelta(hours=5, minutes=30))


if __name__ == "__main__":
    unittest.main()
