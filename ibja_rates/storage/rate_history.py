# ibja_rates/storage/rate_history.py

"""Bounded in-memory store of rate snapshots with temporal queries."""

import logging
from collections.abc import Callable, Iterable
from datetime import date as date_type
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from ibja_rates.config.settings import Settings
from ibja_rates.models.rate_snapshot import RateSnapshot

logger = logging.getLogger("ibja_rates.history")

Clock = Callable[[], datetime]


def default_clock() -> datetime:
    """Current time in the configured capture timezone."""
    return datetime.now(ZoneInfo(Settings.TIMEZONE))


class RateHistory:
    """Append-only, capacity-bounded sequence of rate snapshots.

    Snapshots are kept in insertion order, which is chronological since
    ingestion always stamps "now".  Once the store grows past
    ``max_size`` the oldest entries are dropped.  History lives only for
    the life of the process.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_size: int | None = None,
    ) -> None:
        self._clock: Clock = clock or default_clock
        self._max_size: int = (
            max_size if max_size is not None
            else Settings.MAX_HISTORY_SIZE
        )
        self._entries: list[RateSnapshot] = []

    @property
    def max_size(self) -> int:
        return self._max_size

    def now(self) -> datetime:
        """Return the store's notion of the current instant."""
        return self._clock()

    def __len__(self) -> int:
        return len(self._entries)

    # ── Recording ────────────────────────────────────────

    def ingest(
        self,
        raw_fields: dict[str, str | None],
        metal_type: str = "gold",
    ) -> RateSnapshot:
        """Record a scrape as a new snapshot stamped with the current time."""
        snapshot = RateSnapshot.capture(
            raw_fields, metal_type, self._clock(),
        )
        self._entries.append(snapshot)

        overflow = len(self._entries) - self._max_size
        if overflow > 0:
            self._entries = self._entries[overflow:]
            logger.debug(
                "Evicted %d oldest snapshot(s), capacity %d",
                overflow,
                self._max_size,
            )
        return snapshot

    def all(self) -> list[RateSnapshot]:
        """Return every stored snapshot, oldest first."""
        return list(self._entries)

    def replace(self, snapshots: Iterable[RateSnapshot]) -> None:
        """Overwrite the whole store (fixtures and admin resets)."""
        self._entries = list(snapshots)
        logger.info(
            "Rate history replaced with %d snapshot(s)",
            len(self._entries),
        )

    # ── Querying ─────────────────────────────────────────

    def _for_metal(self, metal_type: str) -> list[RateSnapshot]:
        return [
            s for s in self._entries if s.metal_type == metal_type
        ]

    def latest(self, metal_type: str = "gold") -> RateSnapshot | None:
        """Most recently ingested snapshot for *metal_type*."""
        matching = self._for_metal(metal_type)
        return matching[-1] if matching else None

    def as_of(
        self,
        hours_ago: float,
        metal_type: str = "gold",
    ) -> RateSnapshot | None:
        """Latest snapshot that is at least *hours_ago* hours old.

        This is not the snapshot nearest to the target instant: with
        sparse history the result may be much older than *hours_ago*.
        """
        target = self._clock() - timedelta(hours=hours_ago)
        eligible = [
            s for s in self._for_metal(metal_type)
            if s.timestamp <= target
        ]
        return eligible[-1] if eligible else None

    def from_date(
        self,
        day: datetime | date_type | str,
        metal_type: str = "gold",
    ) -> list[RateSnapshot]:
        """All snapshots captured on *day* (``YYYY-MM-DD`` or a date).

        A datetime is reduced to its calendar date first.
        """
        if isinstance(day, datetime):
            day = day.date()
        day_str = (
            day.isoformat() if isinstance(day, date_type) else day
        )
        return [
            s for s in self._for_metal(metal_type)
            if s.date == day_str
        ]

    def today(self, metal_type: str = "gold") -> list[RateSnapshot]:
        """All snapshots captured on the clock's current date."""
        return self.from_date(self._clock().date(), metal_type)

    # ── Maintenance ──────────────────────────────────────

    def clear_old_data(
        self, days_to_keep: int | None = None,
    ) -> int:
        """Drop snapshots older than the retention window.

        Returns the number of snapshots removed.
        """
        days = (
            days_to_keep if days_to_keep is not None
            else Settings.RETENTION_DAYS
        )
        cutoff = self._clock() - timedelta(days=days)
        before = len(self._entries)
        self._entries = [
            s for s in self._entries if s.timestamp >= cutoff
        ]
        removed = before - len(self._entries)
        if removed:
            logger.info(
                "Retention purge removed %d snapshot(s) older than %d days",
                removed,
                days,
            )
        return removed
