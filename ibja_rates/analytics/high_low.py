# ibja_rates/analytics/high_low.py

"""Intraday and weekly extremes plus hourly bucketing of snapshots."""

from collections.abc import Iterable
from datetime import date as date_type
from datetime import timedelta

from ibja_rates.analytics.changes import parse_rate
from ibja_rates.models.rate_change import HighLow
from ibja_rates.models.rate_snapshot import RateSnapshot
from ibja_rates.storage.rate_history import RateHistory


def daily_high_low(
    history: RateHistory,
    day: date_type | str,
    metal_type: str = "gold",
) -> dict[str, HighLow] | None:
    """High, low and range per field for every snapshot on *day*.

    The field set comes from the day's first snapshot; labels that only
    appear in later snapshots are not summarised.  Non-positive and
    unparseable values are ignored, and a field with no valid value is
    omitted.  Returns ``None`` when nothing was captured that day.
    """
    day_rates = history.from_date(day, metal_type)
    if not day_rates:
        return None

    result: dict[str, HighLow] = {}
    for key in day_rates[0].rates:
        if key == "date":
            continue
        values = [
            v for v in (
                parse_rate(s.rates.get(key)) for s in day_rates
            )
            if v is not None and v > 0
        ]
        if values:
            high = max(values)
            low = min(values)
            result[key] = HighLow(high=high, low=low, range=high - low)
    return result


def weekly_high_low(
    history: RateHistory,
    metal_type: str = "gold",
) -> dict[str, dict[str, HighLow]]:
    """Daily high/low for today and the six days before, newest first."""
    today = history.now().date()
    weekly: dict[str, dict[str, HighLow]] = {}
    for offset in range(7):
        day = (today - timedelta(days=offset)).isoformat()
        day_high_low = daily_high_low(history, day, metal_type)
        if day_high_low is not None:
            weekly[day] = day_high_low
    return weekly


def group_by_hour(
    snapshots: Iterable[RateSnapshot],
) -> dict[str, list[RateSnapshot]]:
    """Bucket snapshots into ``"HH:00"`` keys by capture hour."""
    groups: dict[str, list[RateSnapshot]] = {}
    for snapshot in snapshots:
        hour_key = f"{snapshot.timestamp.hour:02d}:00"
        groups.setdefault(hour_key, []).append(snapshot)
    return groups


def hourly_summary(
    hourly_groups: dict[str, list[RateSnapshot]],
) -> dict[str, object]:
    """Active hours, busiest hour and total points of an hourly grouping."""
    peak: str | None = None
    for hour, entries in hourly_groups.items():
        if peak is None or len(entries) > len(hourly_groups[peak]):
            peak = hour

    return {
        "activeHours": len(hourly_groups),
        "peakActivityHour": peak,
        "totalDataPoints": sum(
            len(entries) for entries in hourly_groups.values()
        ),
    }
