# ibja_rates/scrapers/ibja_scraper.py

"""Scraper for ibjarates.com, the India Bullion and Jewellers Association."""

from typing import Any

from bs4 import BeautifulSoup

from ibja_rates.analytics.changes import parse_rate
from ibja_rates.config.settings import Settings
from ibja_rates.scrapers.base_scraper import BaseScraper

# Column order of the AM/PM history tables
HISTORY_COLUMNS: tuple[str, ...] = (
    "date",
    "gold_999",
    "gold_995",
    "gold_916",
    "gold_750",
    "gold_585",
    "silver_999",
)


class ScrapeError(Exception):
    """Raised when the rates page cannot be retrieved."""


def _text(node: Any) -> str:
    return node.get_text().strip() if node is not None else ""


def parse_label_rates(
    soup: BeautifulSoup, label_ids: list[str],
) -> dict[str, str | None]:
    """Read the text of each labelled element, ``None`` when empty."""
    return {
        label: _text(soup.find(id=label)) or None
        for label in label_ids
    }


def parse_history_table(
    soup: BeautifulSoup, row_selector: str,
) -> list[dict[str, str]]:
    """Parse the seven-column rows of an AM or PM history table."""
    history: list[dict[str, str]] = []
    for row in soup.select(row_selector):
        cells = row.find_all("td")
        if len(cells) != len(HISTORY_COLUMNS):
            continue
        entry = {
            column: _text(cell)
            for column, cell in zip(HISTORY_COLUMNS, cells)
        }
        entry["date"] = entry["date"].replace("\n", "")
        history.append(entry)
    return history


def first_history_silver(
    soup: BeautifulSoup, row_selector: str,
) -> str | None:
    """First non-empty silver rate in a history table."""
    for entry in parse_history_table(soup, row_selector):
        if entry["silver_999"]:
            return entry["silver_999"]
    return None


def parse_platinum_row(
    soup: BeautifulSoup, row_title: str,
) -> str | None:
    """Find the platinum rate in the table row titled *row_title*."""
    for row in soup.find_all("tr"):
        first = row.find("td")
        if first is None or _text(first).upper() != row_title:
            continue
        cells = row.find_all("td")
        if len(cells) < 3:
            continue
        rate_text = _text(cells[2]).replace(",", "")
        if rate_text and parse_rate(rate_text) is not None:
            return rate_text
    return None


def parse_pdf_link(
    soup: BeautifulSoup, link_selector: str, base_url: str,
) -> dict[str, str] | None:
    """Locate the "Previous 30 Days" PDF and return an absolute URL."""
    href: str | None = None
    title: str | None = None
    for anchor in soup.select(link_selector):
        text = _text(anchor)
        if "30 Days" in text:
            href = str(anchor.get("href", ""))
            title = text
    if not href:
        return None
    if not href.startswith("http"):
        href = f"{base_url}/{href.replace('../', '').lstrip('/')}"
    return {"title": title or "Previous 30 Days", "url": href}


class IbjaScraper(BaseScraper):
    """Scraper for the IBJA daily opening and closing rates page.

    The site publishes one HTML page holding the current AM/PM rate
    labels, two history tables (``#tab-am`` and ``#tab-pm``) and a link
    to a PDF of the previous 30 days.
    """

    def __init__(self) -> None:
        super().__init__("ibja", Settings.SOURCE_URL)

    def expected_markers(self) -> list[str]:
        return [
            *self._labels("gold_labels"),
            *self._labels("silver_labels"),
            self.selectors["platinum_label"],
            "tab-am",
            "tab-pm",
        ]

    def _labels(self, key: str) -> list[str]:
        return [
            label.strip()
            for label in self.selectors.get(key, "").split(",")
            if label.strip()
        ]

    def fetch_page(self) -> BeautifulSoup:
        """Download and parse the rates page.

        Raises:
            ScrapeError: when the page could not be retrieved.
        """
        soup = self._get_page(self.base_url)
        if soup is None:
            self.logger.error(
                "[ibja] Could not load %s", self.base_url,
            )
            raise ScrapeError(f"Failed to fetch {self.base_url}")
        return soup

    # ── Current rates ────────────────────────────────────

    def gold_rates(
        self, soup: BeautifulSoup,
    ) -> dict[str, str | None]:
        """All ten gold labels; any of them may be ``None``."""
        result = parse_label_rates(soup, self._labels("gold_labels"))
        if not any(v is not None for v in result.values()):
            self.logger.warning("[ibja] No gold rates found on the page")
        return result

    def silver_rates(
        self, soup: BeautifulSoup,
    ) -> dict[str, str | None] | None:
        am_label, pm_label = self._labels("silver_labels")
        labels = parse_label_rates(soup, [am_label, pm_label])
        silver_am, silver_pm = labels[am_label], labels[pm_label]

        if not silver_am and not silver_pm:
            self.logger.info(
                "[ibja] Silver labels not found, parsing history table"
            )
            silver_am = first_history_silver(
                soup, self.selectors["history_am"],
            )
            silver_pm = first_history_silver(
                soup, self.selectors["history_pm"],
            )

        if not silver_am and not silver_pm:
            self.logger.warning(
                "[ibja] No silver rates via labels or history table"
            )
            return None
        return {am_label: silver_am, pm_label: silver_pm or silver_am}

    def platinum_rates(
        self, soup: BeautifulSoup,
    ) -> dict[str, str | None] | None:
        label = self.selectors["platinum_label"]
        rate = parse_label_rates(soup, [label])[label]
        if not rate:
            self.logger.info(
                "[ibja] Platinum label not found, parsing table"
            )
            rate = parse_platinum_row(
                soup, self.selectors["platinum_row_title"],
            )
        if not rate:
            self.logger.warning("[ibja] No platinum rate found")
            return None
        # The site shows a single platinum rate for both sessions
        return {f"{label}_AM": rate, f"{label}_PM": rate}

    def fetch_current_rates(
        self, metal: str,
    ) -> dict[str, str | None] | None:
        parsers = {
            "gold": self.gold_rates,
            "silver": self.silver_rates,
            "platinum": self.platinum_rates,
        }
        parser = parsers.get(metal)
        if parser is None:
            raise ValueError(f"Unsupported metal: {metal}")
        return parser(self.fetch_page())

    # ── History & downloads ──────────────────────────────

    def fetch_history(self) -> dict[str, list[dict[str, str]]]:
        """Return the AM and PM history tables."""
        soup = self.fetch_page()
        return {
            "am": parse_history_table(soup, self.selectors["history_am"]),
            "pm": parse_history_table(soup, self.selectors["history_pm"]),
        }

    def fetch_pdf_link(self) -> dict[str, str] | None:
        """Return the previous-30-days PDF title and absolute URL."""
        soup = self.fetch_page()
        return parse_pdf_link(
            soup, self.selectors["pdf_links"], self.base_url,
        )
