# ibja_rates/services/rates_service.py

"""Coordinates scraping, rate history and analytics for the HTTP layer."""

import asyncio
import logging
from datetime import datetime
from typing import Any

from ibja_rates.analytics.changes import (
    high_low_summary,
    parse_rate,
    rate_changes,
    summarize_changes,
    weekly_summary,
)
from ibja_rates.analytics.high_low import (
    daily_high_low,
    group_by_hour,
    hourly_summary,
    weekly_high_low,
)
from ibja_rates.models.rate_change import ChangeRecord, HighLow
from ibja_rates.models.rate_snapshot import RateSnapshot
from ibja_rates.scrapers.ibja_scraper import IbjaScraper, ScrapeError
from ibja_rates.services.currency import CurrencyConverter
from ibja_rates.services.rss import parse_item_date
from ibja_rates.storage.rate_history import RateHistory

logger = logging.getLogger("ibja_rates.service")

SUPPORTED_METALS: tuple[str, ...] = ("gold", "silver", "platinum")


def _changes_to_dict(
    changes: dict[str, ChangeRecord] | None,
) -> dict[str, object] | None:
    if changes is None:
        return None
    return {key: record.to_dict() for key, record in changes.items()}


def _high_low_to_dict(
    high_low: dict[str, HighLow],
) -> dict[str, dict[str, float]]:
    return {key: hl.to_dict() for key, hl in high_low.items()}


def _chart_rows(
    entries: list[dict[str, str]], session: str,
) -> list[dict[str, Any]]:
    """Rows with both 999 and 916 rates, plus spread and purity ratio."""
    rows: list[dict[str, Any]] = []
    for entry in entries:
        if not (entry["gold_999"] and entry["gold_916"] and entry["date"]):
            continue
        g999 = parse_rate(entry["gold_999"]) or 0.0
        g916 = parse_rate(entry["gold_916"]) or 0.0
        rows.append({
            "date": entry["date"],
            "session": session,
            "gold_999": g999,
            "gold_916": g916,
            "difference": g999 - g916,
            "purity_ratio": f"{g999 / g916:.4f}" if g916 else None,
        })
    return rows


class RatesService:
    """Builds the JSON payloads served by the API.

    The scraper is blocking, so every scrape runs in a worker thread.
    Analytics over the rate history are synchronous and complete between
    scrapes, so the history needs no locking.
    """

    def __init__(
        self,
        scraper: IbjaScraper | None = None,
        history: RateHistory | None = None,
        converter: CurrencyConverter | None = None,
    ) -> None:
        self.scraper = scraper or IbjaScraper()
        self.history = history or RateHistory()
        self.converter = converter or CurrencyConverter()

    def today(self) -> str:
        return self.history.now().date().isoformat()

    def _record(
        self, rates: dict[str, str | None], metal: str,
    ) -> RateSnapshot:
        snapshot = self.history.ingest(rates, metal)
        self.history.clear_old_data()
        return snapshot

    # ── Current rates ────────────────────────────────────

    async def fetch_and_store(
        self, metal: str = "gold",
    ) -> RateSnapshot | None:
        """Scrape current rates for *metal* and record a snapshot.

        Returns ``None`` when the page could not be fetched or carried no
        rates for *metal*.  Gold labels are recorded even when empty.
        """
        try:
            rates = await asyncio.to_thread(
                self.scraper.fetch_current_rates, metal,
            )
        except ScrapeError as exc:
            logger.error("Error fetching current %s rates: %s", metal, exc)
            return None
        if rates is None:
            return None
        return self._record(rates, metal)

    async def latest_rates(
        self, metal: str,
    ) -> dict[str, str | None] | None:
        """Current labelled rates for *metal*, stamped with today's date.

        Returns ``None`` when the page shows no rate for *metal*.  A failed
        download propagates as :class:`ScrapeError`.
        """
        rates = await asyncio.to_thread(
            self.scraper.fetch_current_rates, metal,
        )
        if not rates or all(v is None for v in rates.values()):
            return None
        snapshot = self._record(rates, metal)
        return {"date": snapshot.date, **snapshot.rates}

    # ── Change tracking ──────────────────────────────────

    async def daily_changes(self) -> dict[str, object] | None:
        """Compare current gold rates with the snapshot from 24h ago."""
        current = await self.fetch_and_store("gold")
        if current is None:
            return None

        yesterday = self.history.as_of(24, "gold")
        if yesterday is None:
            return {
                "message": "Daily changes tracking started",
                "current": current.to_dict(),
                "changes": None,
                "note": (
                    "No historical data available yet. Changes will be "
                    "available after 24 hours of tracking."
                ),
            }

        changes = rate_changes(current.rates, yesterday.rates)
        summary = summarize_changes(changes)
        return {
            "current": current.to_dict(),
            "previous": yesterday.to_dict(),
            "changes": _changes_to_dict(changes),
            "summary": summary.to_dict() if summary else None,
        }

    async def hourly_tracking(self) -> dict[str, object]:
        """Today's gold snapshots bucketed by capture hour."""
        await self.fetch_and_store("gold")

        today_rates = self.history.today("gold")
        if not today_rates:
            return {
                "message": "Hourly tracking started",
                "data": [],
                "note": (
                    "No hourly data available yet. Data will accumulate "
                    "throughout the day."
                ),
            }

        groups = group_by_hour(today_rates)
        return {
            "date": self.today(),
            "hourlyData": {
                hour: [s.to_dict() for s in entries]
                for hour, entries in groups.items()
            },
            "totalEntries": len(today_rates),
            "summary": hourly_summary(groups),
        }

    async def weekly_trends(self) -> dict[str, object] | None:
        """Compare with a week ago and summarise the week's highs/lows."""
        current = await self.fetch_and_store("gold")
        if current is None:
            return None

        week_ago = self.history.as_of(24 * 7, "gold")
        if week_ago is None:
            return {
                "message": "Weekly trends tracking started",
                "current": current.to_dict(),
                "trends": None,
                "note": (
                    "No weekly historical data available yet. Trends will "
                    "be available after 7 days of tracking."
                ),
            }

        changes = rate_changes(current.rates, week_ago.rates)
        week = weekly_high_low(self.history, "gold")
        return {
            "current": current.to_dict(),
            "weekAgo": week_ago.to_dict(),
            "weeklyChanges": _changes_to_dict(changes),
            "weeklyHighLow": {
                day: _high_low_to_dict(hl) for day, hl in week.items()
            },
            "summary": weekly_summary(changes, week),
        }

    async def daily_high_low(
        self, day: str | None = None,
    ) -> dict[str, object] | None:
        """High/low per gold field for *day* (default today)."""
        await self.fetch_and_store("gold")

        target = day or self.today()
        high_low = daily_high_low(self.history, target, "gold")
        if high_low is None:
            return None
        return {
            "date": target,
            "highLow": _high_low_to_dict(high_low),
            "summary": high_low_summary(high_low),
        }

    # ── History tables ───────────────────────────────────

    async def history_tables(self) -> dict[str, list[dict[str, str]]]:
        return await asyncio.to_thread(self.scraper.fetch_history)

    async def chart_data(self) -> dict[str, object]:
        """999 vs 916 purity comparison built from the history tables."""
        tables = await self.history_tables()
        am = _chart_rows(tables["am"], "AM")
        pm = _chart_rows(tables["pm"], "PM")
        combined = sorted(
            am + pm,
            key=lambda r: parse_item_date(str(r["date"])) or datetime.min.date(),
            reverse=True,
        )
        valid = [
            r for r in combined if r["gold_999"] > 0 and r["gold_916"] > 0
        ]

        def average(column: str) -> float:
            if not valid:
                return 0
            return round(sum(r[column] for r in valid) / len(valid), 2)

        return {
            "title": "Gold Purity Comparison (999 vs 916)",
            "description": (
                "Historical comparison between 999 and 916 gold purity rates"
            ),
            "lastUpdated": datetime.now().astimezone().isoformat(),
            "statistics": {
                "average_999": average("gold_999"),
                "average_916": average("gold_916"),
                "average_difference": average("difference"),
                "total_records": len(combined),
                "valid_records": len(valid),
            },
            "data": combined,
            "am": am,
            "pm": pm,
        }

    async def rss_items(self, metal: str) -> list[dict[str, str]]:
        """Feed items for *metal*; platinum only has current rates."""
        if metal == "platinum":
            current = await self.latest_rates("platinum")
            if current is None:
                return []
            return [{
                "title": f"Platinum Rates - {current['date']}",
                "description": (
                    "Current IBJA Platinum Rates: 999: ₹"
                    f"{current.get('lblPlatinum999_AM') or 'N/A'}"
                ),
                "date": str(current["date"]),
            }]

        tables = await self.history_tables()
        items: list[dict[str, str]] = []
        for session, key in (("AM", "am"), ("PM", "pm")):
            for entry in tables[key]:
                if not entry["date"]:
                    continue
                if metal == "gold" and (entry["gold_999"] or entry["gold_916"]):
                    items.append({
                        "title": f"Gold Rates - {entry['date']} ({session})",
                        "description": (
                            f"{session} IBJA Gold Rates: "
                            f"999: ₹{entry['gold_999'] or 'N/A'}, "
                            f"916: ₹{entry['gold_916'] or 'N/A'}, "
                            f"995: ₹{entry['gold_995'] or 'N/A'}"
                        ),
                        "date": entry["date"],
                    })
                elif metal == "silver" and entry["silver_999"]:
                    items.append({
                        "title": f"Silver Rates - {entry['date']} ({session})",
                        "description": (
                            f"{session} IBJA Silver Rates: "
                            f"999: ₹{entry['silver_999']}"
                        ),
                        "date": entry["date"],
                    })
        return items

    # ── Downloads & conversion ───────────────────────────

    async def pdf_link(self) -> dict[str, str] | None:
        link = await asyncio.to_thread(self.scraper.fetch_pdf_link)
        if link is None:
            return None
        return {
            "title": link["title"],
            "description": "Daily Opening and Closing Market Rate PDF",
            "downloadUrl": link["url"],
            "directLink": link["url"],
            "fileType": "PDF",
            "period": "Last 30 Days",
            "lastUpdated": datetime.now().astimezone().isoformat(),
            "source": "IBJA Rates",
        }

    async def convert(
        self, from_currency: str, to_currency: str, amount: float,
    ) -> dict[str, object]:
        return await asyncio.to_thread(
            self.converter.convert, from_currency, to_currency, amount,
        )
