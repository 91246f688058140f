# tests/test_currency.py

"""Tests for the cached INR currency converter."""

import unittest
from unittest.mock import MagicMock, patch

from ibja_rates.services.currency import (
    CurrencyConverter,
    CurrencyError,
    UnsupportedCurrencyError,
)

RATES = {"INR": 1.0, "USD": 0.012, "EUR": 0.011, "AED": 0.044}


def _ok_response() -> MagicMock:
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"base": "INR", "rates": RATES}
    return resp


@patch("ibja_rates.services.currency.curl_requests.Session")
class TestCurrencyConverter(unittest.TestCase):
    """Rate table caching and conversion maths."""

    def test_convert_inr_to_usd(self, mock_session_cls: MagicMock) -> None:
        mock_session_cls.return_value.get.return_value = _ok_response()

        result = CurrencyConverter().convert("INR", "USD", 1000)

        self.assertEqual(result["from"], "INR")
        self.assertEqual(result["to"], "USD")
        self.assertEqual(result["amount"], 1000)
        self.assertEqual(result["convertedAmount"], 12.0)
        self.assertAlmostEqual(result["rate"], 0.012)
        self.assertIsNotNone(result["lastUpdated"])

    def test_cross_rate(self, mock_session_cls: MagicMock) -> None:
        mock_session_cls.return_value.get.return_value = _ok_response()
        result = CurrencyConverter().convert("USD", "AED", 10)
        self.assertAlmostEqual(result["rate"], 0.044 / 0.012)
        self.assertEqual(result["convertedAmount"], 36.67)

    def test_rates_cached_within_ttl(
        self, mock_session_cls: MagicMock,
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _ok_response()
        converter = CurrencyConverter()

        converter.convert("INR", "USD")
        converter.convert("INR", "EUR")

        self.assertEqual(session.get.call_count, 1)

    def test_unsupported_currency(
        self, mock_session_cls: MagicMock,
    ) -> None:
        mock_session_cls.return_value.get.return_value = _ok_response()
        with self.assertRaises(UnsupportedCurrencyError) as ctx:
            CurrencyConverter().convert("INR", "XYZ")
        self.assertEqual(ctx.exception.supported, list(RATES))

    def test_cold_failure_raises(self, mock_session_cls: MagicMock) -> None:
        mock_session_cls.return_value.get.side_effect = ConnectionError()
        with self.assertRaises(CurrencyError):
            CurrencyConverter().get_rates()

    def test_cold_http_error_raises(self, mock_session_cls: MagicMock) -> None:
        """A non-200 first fetch leaves no table and raises."""
        mock_session_cls.return_value.get.return_value = MagicMock(
            status_code=503,
        )
        converter = CurrencyConverter()
        with self.assertRaises(CurrencyError):
            converter.get_rates()
        with self.assertRaises(CurrencyError):
            converter.convert("INR", "USD")

    def test_stale_refresh_failure_keeps_table(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A failed refresh falls back to the previous table."""
        session = mock_session_cls.return_value
        session.get.return_value = _ok_response()
        converter = CurrencyConverter()
        converter.get_rates()

        converter._updated_at = 0.0
        session.get.return_value = MagicMock(status_code=502)

        self.assertEqual(converter.get_rates(), RATES)


if __name__ == "__main__":
    unittest.main()
