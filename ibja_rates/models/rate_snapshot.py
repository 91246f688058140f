# ibja_rates/models/rate_snapshot.py

"""Timestamped rate observation model for the in-memory rate history."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType


@dataclass(frozen=True)
class RateSnapshot:
    """One scrape of labelled rate strings for a metal at a point in time.

    ``rates`` is a read-only view, so snapshots held by the history
    cannot be altered through the objects its queries return.

    ``capture_session`` is AM/PM of the capture clock.  It is unrelated
    to the ``_AM`` / ``_PM`` suffixes of the IBJA labels inside ``rates``,
    which name the market session the rate was published for.
    """

    timestamp: datetime
    date: str
    time: str
    metal_type: str
    rates: Mapping[str, str | None] = field(
        default_factory=dict, hash=False,
    )
    capture_session: str = "AM"

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", MappingProxyType(dict(self.rates)))

    @classmethod
    def capture(
        cls,
        rates: Mapping[str, str | None],
        metal_type: str,
        timestamp: datetime,
    ) -> "RateSnapshot":
        """Build a snapshot, deriving date/time/session from *timestamp*."""
        return cls(
            timestamp=timestamp,
            date=timestamp.strftime("%Y-%m-%d"),
            time=timestamp.strftime("%H:%M:%S"),
            metal_type=metal_type,
            rates=rates,
            capture_session="AM" if timestamp.hour < 12 else "PM",
        )

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON shape returned by the API."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "date": self.date,
            "time": self.time,
            "metalType": self.metal_type,
            "rates": dict(self.rates),
            "session": self.capture_session,
        }
