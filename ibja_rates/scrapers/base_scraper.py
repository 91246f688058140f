# ibja_rates/scrapers/base_scraper.py

"""Resilient page fetching shared by rate-source scrapers.

A rates source is a single published page that the API re-reads on
almost every request.  Scrapes run on worker threads, so the throttling
and failure state kept here is shared across threads and guarded by
locks.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from ibja_rates.config.settings import Settings


class CircuitBreaker:
    """Refuse fetches after *threshold* consecutive failed page loads.

    Once open, fetches are refused until *cooldown* seconds have passed.
    The next fetch is then let through as a trial: success closes the
    breaker, failure re-opens it for another cooldown.
    """

    def __init__(
        self,
        threshold: int,
        cooldown: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._failures = 0
        self._opened_at: float | None = None

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_open(self) -> bool:
        return self._opened_at is not None

    def allow(self) -> bool:
        """True when a fetch may proceed (closed, or a half-open trial)."""
        with self._lock:
            if self._opened_at is None:
                return True
            if self._clock() - self._opened_at >= self.cooldown:
                self._opened_at = None
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None

    def record_failure(self) -> bool:
        """Count a failed page load; True when this trips the breaker."""
        with self._lock:
            self._failures += 1
            if self._failures >= self.threshold and self._opened_at is None:
                self._opened_at = self._clock()
                return True
            return False


class BaseScraper(ABC):
    """Fetches one source's pages with throttling, retries and fallback.

    Each page load goes through the curl_cffi browser-impersonating
    session with retries, then through cloudscraper.  A response only
    counts as a page when it is not an anti-bot challenge and carries at
    least one of the source's :meth:`expected_markers`.  That check
    rejects maintenance and placeholder pages that still return HTTP 200.
    """

    def __init__(self, source_name: str, base_url: str) -> None:
        self.source_name = source_name
        self.base_url = base_url
        self.logger = logging.getLogger(f"ibja_rates.{source_name}")
        self.settings = Settings()
        self.selectors: dict[str, str] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self.breaker = CircuitBreaker(
            self.settings.CIRCUIT_BREAKER_THRESHOLD,
            self.settings.CIRCUIT_BREAKER_COOLDOWN,
        )
        self._delay_lock = threading.Lock()
        self._delay: float = self.settings.REQUEST_DELAY

    def _load_selectors(self) -> dict[str, str]:
        """This source's section of selectors.json."""
        with open(self.settings.SELECTORS_PATH) as f:
            all_selectors: dict[str, Any] = json.load(f)
        return dict(all_selectors.get(self.source_name, {}))

    # ── Throttling ───────────────────────────────────────

    @property
    def delay(self) -> float:
        """Seconds to pause before the next request."""
        return self._delay

    def _escalate_delay(self) -> None:
        ceiling = (
            self.settings.REQUEST_DELAY * self.settings.MAX_DELAY_MULTIPLIER
        )
        with self._delay_lock:
            self._delay = min(self._delay * 2, ceiling)
            delay = self._delay
        self.logger.warning(
            "[%s] Throttled, delay raised to %.1fs", self.source_name, delay,
        )

    def _reset_delay(self) -> None:
        with self._delay_lock:
            self._delay = self.settings.REQUEST_DELAY

    # ── Page validation ──────────────────────────────────

    def page_problem(self, html: str) -> str | None:
        """Why *html* is not a usable page of this source, else None."""
        lower = html.lower()
        for marker in self.settings.CHALLENGE_MARKERS:
            if marker in lower:
                return f"anti-bot challenge ({marker})"
        if not any(m.lower() in lower for m in self.expected_markers()):
            return "none of the expected rate markers present"
        return None

    # ── Fetching ─────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {**self.settings.DEFAULT_HEADERS, "Referer": self.base_url}

    def _fetch_with_session(self, url: str) -> str | None:
        """GET through curl_cffi, retrying transient and throttled failures."""
        for attempt in range(1, self.settings.MAX_RETRIES + 1):
            try:
                resp = self.session.get(
                    url,
                    headers=self._headers(),
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_name,
                    attempt,
                    exc,
                    exc_info=True,
                )
                time.sleep(self.delay * attempt)
                continue

            if resp.status_code == 200:
                problem = self.page_problem(resp.text)
                if problem is None:
                    self._reset_delay()
                    return resp.text
                self.logger.warning(
                    "[%s] Rejected page on attempt %d: %s",
                    self.source_name,
                    attempt,
                    problem,
                )
                self._escalate_delay()
                time.sleep(self.delay)
            elif resp.status_code in (403, 429):
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt,
                )
                self._escalate_delay()
                time.sleep(self.delay)
            else:
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt,
                )
        return None

    def _fetch_with_cloudscraper(self, url: str) -> str | None:
        """Single GET through cloudscraper's JS-challenge solver."""
        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_name,
        )
        try:
            scraper: Any = cloudscraper.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=self._headers(),
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper fallback failed: %s",
                self.source_name,
                exc,
                exc_info=True,
            )
            return None
        if resp.status_code != 200:
            self.logger.error(
                "[%s] cloudscraper got HTTP %d",
                self.source_name,
                resp.status_code,
            )
            return None
        html = str(resp.text)
        problem = self.page_problem(html)
        if problem is not None:
            self.logger.error(
                "[%s] cloudscraper page rejected: %s",
                self.source_name,
                problem,
            )
            return None
        return html

    def fetch_html(self, url: str) -> str | None:
        """Load *url*, or None when the breaker is open or both paths fail."""
        if not self.breaker.allow():
            self.logger.info(
                "[%s] Circuit open, skipping %s", self.source_name, url,
            )
            return None

        time.sleep(self.delay)
        html = self._fetch_with_session(url)
        if html is None:
            html = self._fetch_with_cloudscraper(url)

        if html is None:
            if self.breaker.record_failure():
                self.logger.error(
                    "[%s] Circuit opened after %d consecutive failures",
                    self.source_name,
                    self.breaker.failures,
                )
            return None
        self.breaker.record_success()
        return html

    def _get_page(self, url: str) -> BeautifulSoup | None:
        html = self.fetch_html(url)
        return BeautifulSoup(html, "lxml") if html is not None else None

    @abstractmethod
    def expected_markers(self) -> list[str]:
        """Strings of which at least one must appear in a genuine page."""
        ...

    @abstractmethod
    def fetch_current_rates(
        self, metal: str,
    ) -> dict[str, str | None] | None:
        """Return the labelled current rates for *metal*, or None."""
        ...
