# ibja_rates/models/rate_change.py

"""Result models produced by the rate analytics."""

from dataclasses import dataclass


@dataclass
class ChangeRecord:
    """Movement of a single rate field between two snapshots."""

    current: float
    previous: float
    change: float
    change_percent: float
    trend: str  # "up", "down", "stable"

    def to_dict(self) -> dict[str, object]:
        return {
            "current": self.current,
            "previous": self.previous,
            "change": self.change,
            "changePercent": self.change_percent,
            "trend": self.trend,
        }


@dataclass
class TrendLeader:
    """The field with the largest gain or loss in a comparison."""

    rate: str
    change: float

    def to_dict(self) -> dict[str, object]:
        return {"rate": self.rate, "change": self.change}


@dataclass
class ChangeSummary:
    """Aggregate counts over a set of change records."""

    total_changes: int = 0
    up_trends: int = 0
    down_trends: int = 0
    stable: int = 0
    biggest_gainer: TrendLeader | None = None
    biggest_loser: TrendLeader | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "totalChanges": self.total_changes,
            "upTrends": self.up_trends,
            "downTrends": self.down_trends,
            "stable": self.stable,
            "biggestGainer": (
                self.biggest_gainer.to_dict()
                if self.biggest_gainer else None
            ),
            "biggestLoser": (
                self.biggest_loser.to_dict()
                if self.biggest_loser else None
            ),
        }


@dataclass
class HighLow:
    """Extremes of one rate field over a day."""

    high: float
    low: float
    range: float

    def to_dict(self) -> dict[str, float]:
        return {"high": self.high, "low": self.low, "range": self.range}
