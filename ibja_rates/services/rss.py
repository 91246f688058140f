# ibja_rates/services/rss.py

"""RSS 2.0 feed generation and month filtering for rate feeds."""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date, datetime, timezone
from email.utils import format_datetime

logger = logging.getLogger("ibja_rates.rss")

_ATOM_NS = "http://www.w3.org/2005/Atom"
ET.register_namespace("atom", _ATOM_NS)

_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass
class MonthFilter:
    """A ``?m=YYYY-MM`` feed filter."""

    year: int
    month: int
    month_string: str


def parse_item_date(value: str | None) -> date | None:
    """Parse ``DD/MM/YYYY`` (history tables) or ``YYYY-MM-DD`` dates."""
    if not value:
        return None
    text = value.strip()
    try:
        if "/" in text:
            day, month, year = (int(p) for p in text.split("/")[:3])
            return date(year, month, day)
        if "-" in text:
            return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug("Unparseable feed item date: %r", value)
    return None


def parse_month_filter(value: str | None) -> MonthFilter | None:
    """Parse the ``m`` query parameter; invalid values mean no filter."""
    if not value:
        return None
    match = _MONTH_RE.match(value)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return MonthFilter(year=year, month=month, month_string=value)


def filter_items_by_month(
    items: list[dict[str, str]],
    month_filter: MonthFilter | None,
) -> list[dict[str, str]]:
    """Keep the items dated within the filter's month."""
    if month_filter is None:
        return items
    kept: list[dict[str, str]] = []
    for item in items:
        item_date = parse_item_date(item.get("date"))
        if (
            item_date is not None
            and item_date.year == month_filter.year
            and item_date.month == month_filter.month
        ):
            kept.append(item)
    return kept


def generate_rss_feed(
    title: str,
    description: str,
    items: list[dict[str, str]],
    base_url: str,
    endpoint: str,
    now: datetime | None = None,
) -> str:
    """Render *items* (title, description, date) as an RSS 2.0 document."""
    now = now or datetime.now(timezone.utc)
    build_date = format_datetime(now, usegmt=True)

    rss = ET.Element("rss", {"version": "2.0"})
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = title
    ET.SubElement(channel, "description").text = description
    ET.SubElement(channel, "link").text = base_url
    ET.SubElement(channel, f"{{{_ATOM_NS}}}link", {
        "href": f"{base_url}{endpoint}/rss",
        "rel": "self",
        "type": "application/rss+xml",
    })
    ET.SubElement(channel, "language").text = "en-us"
    ET.SubElement(channel, "lastBuildDate").text = build_date
    ET.SubElement(channel, "pubDate").text = build_date
    ET.SubElement(channel, "ttl").text = "120"
    ET.SubElement(channel, "generator").text = "IBJA API RSS Generator"

    for item in items:
        item_date = parse_item_date(item.get("date"))
        published = (
            datetime(
                item_date.year, item_date.month, item_date.day,
                tzinfo=timezone.utc,
            )
            if item_date else now
        )
        anchor = item.get("date") or now.isoformat()

        node = ET.SubElement(channel, "item")
        ET.SubElement(node, "title").text = item.get("title", "")
        ET.SubElement(node, "description").text = item.get(
            "description", "",
        )
        ET.SubElement(node, "pubDate").text = format_datetime(
            published, usegmt=True,
        )
        ET.SubElement(
            node, "guid", {"isPermaLink": "false"},
        ).text = f"{base_url}{endpoint}#{anchor}"
        ET.SubElement(node, "link").text = f"{base_url}{endpoint}"

    body = ET.tostring(rss, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'
