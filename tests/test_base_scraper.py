# tests/test_base_scraper.py

"""Tests for BaseScraper resilience and page validation."""

import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

from bs4 import BeautifulSoup

from ibja_rates.scrapers.base_scraper import BaseScraper, CircuitBreaker

RATES_PAGE = (
    '<html><body><span id="lblGold999_AM">72,500</span></body></html>'
)
CHALLENGE_PAGE = (
    "<html><title>Just a moment...</title>"
    '<span id="lblGold999_AM"></span></html>'
)
PLACEHOLDER_PAGE = "<html><body>Site under maintenance</body></html>"


class _StubScraper(BaseScraper):
    """Concrete scraper that accepts pages showing the gold 999 label."""

    def __init__(self) -> None:
        super().__init__("ibja", "https://example.com")

    def expected_markers(self) -> list[str]:
        return ["lblGold999_AM"]

    def fetch_current_rates(
        self, metal: str,
    ) -> dict[str, str | None] | None:
        return None

    def get_page(self, url: str) -> BeautifulSoup | None:
        """Public wrapper for _get_page."""
        return self._get_page(url)


def _resp(status: int, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestCircuitBreaker(unittest.TestCase):
    """Breaker state transitions."""

    def test_opens_at_threshold(self) -> None:
        breaker = CircuitBreaker(threshold=3, cooldown=60, clock=_Clock())
        self.assertFalse(breaker.record_failure())
        self.assertFalse(breaker.record_failure())
        self.assertTrue(breaker.record_failure())
        self.assertTrue(breaker.is_open)
        self.assertFalse(breaker.allow())

    def test_half_open_after_cooldown(self) -> None:
        clock = _Clock()
        breaker = CircuitBreaker(threshold=1, cooldown=60, clock=clock)
        breaker.record_failure()

        clock.now += 59
        self.assertFalse(breaker.allow())
        clock.now += 1
        self.assertTrue(breaker.allow())
        self.assertFalse(breaker.is_open)

    def test_failed_half_open_attempt_reopens(self) -> None:
        clock = _Clock()
        breaker = CircuitBreaker(threshold=2, cooldown=60, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        clock.now += 61
        self.assertTrue(breaker.allow())

        self.assertTrue(breaker.record_failure())
        self.assertFalse(breaker.allow())

    def test_success_resets(self) -> None:
        breaker = CircuitBreaker(threshold=2, cooldown=60, clock=_Clock())
        breaker.record_failure()
        breaker.record_success()
        self.assertEqual(breaker.failures, 0)
        self.assertFalse(breaker.record_failure())

    def test_concurrent_failures_all_counted(self) -> None:
        breaker = CircuitBreaker(threshold=10_000, cooldown=60)
        with ThreadPoolExecutor(max_workers=8) as pool:
            tripped = list(pool.map(
                lambda _: breaker.record_failure(), range(10_000),
            ))
        self.assertEqual(breaker.failures, 10_000)
        self.assertEqual(tripped.count(True), 1)


@patch("ibja_rates.scrapers.base_scraper.curl_requests.Session")
class TestPageProblem(unittest.TestCase):
    """Challenge and placeholder pages are told apart from rate pages."""

    def test_rates_page_accepted(self, _session: MagicMock) -> None:
        self.assertIsNone(_StubScraper().page_problem(RATES_PAGE))

    def test_challenge_rejected_even_with_markers(
        self, _session: MagicMock,
    ) -> None:
        problem = _StubScraper().page_problem(CHALLENGE_PAGE)
        assert problem is not None
        self.assertIn("challenge", problem)

    def test_page_without_rate_markers_rejected(
        self, _session: MagicMock,
    ) -> None:
        problem = _StubScraper().page_problem(PLACEHOLDER_PAGE)
        assert problem is not None
        self.assertIn("expected rate markers", problem)


@patch("ibja_rates.scrapers.base_scraper.cloudscraper")
@patch("ibja_rates.scrapers.base_scraper.curl_requests.Session")
class TestFetchHtml(unittest.TestCase):
    """Retries, fallback and breaker bookkeeping around a page load."""

    def test_challenge_then_page_retried(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock,
    ) -> None:
        mock_session = mock_session_cls.return_value
        mock_session.get.side_effect = [
            _resp(200, CHALLENGE_PAGE), _resp(200, RATES_PAGE),
        ]
        scraper = _StubScraper()

        self.assertEqual(scraper.fetch_html("https://example.com"), RATES_PAGE)
        self.assertEqual(mock_session.get.call_count, 2)
        mock_cloudscraper.create_scraper.assert_not_called()

    def test_referer_is_source_url(
        self, mock_session_cls: MagicMock, _cloudscraper: MagicMock,
    ) -> None:
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _resp(200, RATES_PAGE)
        _StubScraper().fetch_html("https://example.com/page")
        headers = mock_session.get.call_args.kwargs["headers"]
        self.assertEqual(headers["Referer"], "https://example.com")

    def test_placeholder_page_falls_back_then_fails(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock,
    ) -> None:
        mock_session_cls.return_value.get.return_value = _resp(
            200, PLACEHOLDER_PAGE,
        )
        mock_cloudscraper.create_scraper.return_value.get.return_value = (
            _resp(200, PLACEHOLDER_PAGE)
        )
        scraper = _StubScraper()

        self.assertIsNone(scraper.fetch_html("https://example.com"))
        self.assertEqual(scraper.breaker.failures, 1)

    def test_circuit_opens_and_blocks(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock,
    ) -> None:
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _resp(500)
        mock_cloudscraper.create_scraper.side_effect = RuntimeError("boom")
        scraper = _StubScraper()

        for _ in range(scraper.settings.CIRCUIT_BREAKER_THRESHOLD):
            self.assertIsNone(scraper.fetch_html("https://example.com"))
        self.assertTrue(scraper.breaker.is_open)

        mock_session.get.reset_mock()
        self.assertIsNone(scraper.get_page("https://example.com"))
        mock_session.get.assert_not_called()

    def test_success_resets_breaker(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock,
    ) -> None:
        mock_session_cls.return_value.get.return_value = _resp(200, RATES_PAGE)
        scraper = _StubScraper()
        scraper.breaker.record_failure()

        self.assertIsNotNone(scraper.fetch_html("https://example.com"))
        self.assertEqual(scraper.breaker.failures, 0)

    def test_falls_back_to_cloudscraper(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock,
    ) -> None:
        mock_session_cls.return_value.get.return_value = _resp(503)
        mock_cloudscraper.create_scraper.return_value.get.return_value = (
            _resp(200, RATES_PAGE)
        )
        soup = _StubScraper().get_page("https://example.com")
        assert soup is not None
        self.assertEqual(soup.find(id="lblGold999_AM").get_text(), "72,500")


@patch("ibja_rates.scrapers.base_scraper.curl_requests.Session")
class TestAdaptiveDelay(unittest.TestCase):
    """Throttling responses escalate the delay."""

    def test_429_escalates_delay(self, mock_session_cls: MagicMock) -> None:
        mock_session_cls.return_value.get.side_effect = [
            _resp(429), _resp(200, RATES_PAGE),
        ]
        scraper = _StubScraper()
        with patch.object(scraper, "_reset_delay"):
            scraper.fetch_html("https://example.com")
        self.assertGreater(scraper.delay, scraper.settings.REQUEST_DELAY)

    def test_success_resets_delay(self, mock_session_cls: MagicMock) -> None:
        mock_session_cls.return_value.get.return_value = _resp(200, RATES_PAGE)
        scraper = _StubScraper()
        scraper._escalate_delay()

        scraper.fetch_html("https://example.com")

        self.assertEqual(scraper.delay, scraper.settings.REQUEST_DELAY)

    def test_delay_capped_at_max(self, _session: MagicMock) -> None:
        scraper = _StubScraper()
        ceiling = (
            scraper.settings.REQUEST_DELAY
            * scraper.settings.MAX_DELAY_MULTIPLIER
        )
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: scraper._escalate_delay(), range(40)))
        self.assertEqual(scraper.delay, ceiling)


if __name__ == "__main__":
    unittest.main()
