# ibja_rates/analytics/changes.py

"""Field-by-field rate comparisons and trend summaries.

Scraped rates arrive as strings such as ``"1,23,450"``.  Parsing is
deferred to this module and is best effort: a value that does not parse
after stripping thousands separators is left out of the result instead
of raising.
"""

import math
from collections.abc import Mapping

from ibja_rates.models.rate_change import (
    ChangeRecord,
    ChangeSummary,
    HighLow,
    TrendLeader,
)

# Non-rate key that scraped payloads carry alongside the labels
_DATE_KEY = "date"


def parse_rate(value: object) -> float | None:
    """Parse a scraped rate string, returning ``None`` when not numeric."""
    if value is None:
        return None
    cleaned = str(value).replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def percentage_change(
    old_value: float | None, new_value: float | None,
) -> float:
    """Percent change from *old_value* to *new_value*.

    Missing data and a zero base both count as "no measurable change".
    """
    if not old_value or not new_value:
        return 0
    return ((new_value - old_value) / old_value) * 100


def _trend(current: float, previous: float) -> str:
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "stable"


def rate_changes(
    current_rates: Mapping[str, str | None] | None,
    previous_rates: Mapping[str, str | None] | None,
) -> dict[str, ChangeRecord] | None:
    """Diff two rate mappings field by field.

    Returns ``None`` when either side is missing.  Fields absent or empty
    on either side, and fields that are not numeric, are omitted.
    """
    if current_rates is None or previous_rates is None:
        return None

    changes: dict[str, ChangeRecord] = {}
    for key, raw_current in current_rates.items():
        if key == _DATE_KEY:
            continue
        raw_previous = previous_rates.get(key)
        if not raw_current or not raw_previous:
            continue

        current = parse_rate(raw_current)
        previous = parse_rate(raw_previous)
        if current is None or previous is None:
            continue

        changes[key] = ChangeRecord(
            current=current,
            previous=previous,
            change=current - previous,
            change_percent=percentage_change(previous, current),
            trend=_trend(current, previous),
        )
    return changes


def summarize_changes(
    changes: dict[str, ChangeRecord] | None,
) -> ChangeSummary | None:
    """Count trends and find the biggest gainer and loser."""
    if changes is None:
        return None

    summary = ChangeSummary(total_changes=len(changes))
    max_gain = -math.inf
    max_loss = math.inf

    for key, record in changes.items():
        if record.trend == "up":
            summary.up_trends += 1
        elif record.trend == "down":
            summary.down_trends += 1
        else:
            summary.stable += 1

        # Strict comparisons: the first field seen wins a tie
        if record.change_percent > max_gain:
            max_gain = record.change_percent
            summary.biggest_gainer = TrendLeader(
                rate=key, change=record.change_percent,
            )
        if record.change_percent < max_loss:
            max_loss = record.change_percent
            summary.biggest_loser = TrendLeader(
                rate=key, change=record.change_percent,
            )

    return summary


def weekly_summary(
    changes: dict[str, ChangeRecord] | None,
    weekly_high_low: dict[str, dict[str, HighLow]],
) -> dict[str, object]:
    """Summarise a week of tracking into an overall market direction."""
    days_tracked = len(weekly_high_low)

    if changes is None:
        overall = "neutral"
    else:
        ups = sum(1 for c in changes.values() if c.trend == "up")
        downs = sum(1 for c in changes.values() if c.trend == "down")
        overall = "bullish" if ups > downs else "bearish"

    return {
        "daysTracked": days_tracked,
        "overallTrend": overall,
        "dataAvailability": "complete" if days_tracked >= 7 else "partial",
    }


def high_low_summary(
    high_low: dict[str, HighLow],
) -> dict[str, dict[str, str]]:
    """Volatility (range as % of low) and midpoint for each field."""
    summaries: dict[str, dict[str, str]] = {}
    for key, hl in high_low.items():
        summaries[key] = {
            "volatility": f"{hl.range / hl.low * 100:.2f}%",
            "midpoint": f"{(hl.high + hl.low) / 2:.2f}",
        }
    return summaries
