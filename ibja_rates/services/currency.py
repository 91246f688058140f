# ibja_rates/services/currency.py

"""INR-based currency conversion with a cached exchange-rate table."""

import logging
import time
from datetime import datetime, timezone

from curl_cffi import requests as curl_requests

from ibja_rates.config.settings import Settings

logger = logging.getLogger("ibja_rates.currency")


class CurrencyError(Exception):
    """Raised when exchange rates cannot be obtained."""


class UnsupportedCurrencyError(CurrencyError):
    """Raised when a requested currency code is not in the rate table."""

    def __init__(self, supported: list[str]) -> None:
        super().__init__("Unsupported currency")
        self.supported = supported


class CurrencyConverter:
    """Convert amounts using rates fetched from ExchangeRate-API.

    Rates are refreshed at most once per ``EXCHANGE_RATE_TTL`` seconds.
    A failed refresh keeps serving the previous table; only a cold
    converter with no table at all raises.
    """

    def __init__(self) -> None:
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._rates: dict[str, float] | None = None
        self._updated_at: float | None = None

    @property
    def last_updated(self) -> str | None:
        if self._updated_at is None:
            return None
        return datetime.fromtimestamp(
            self._updated_at, tz=timezone.utc,
        ).isoformat()

    def _is_stale(self, now: float) -> bool:
        return (
            self._rates is None
            or self._updated_at is None
            or now - self._updated_at > self.settings.EXCHANGE_RATE_TTL
        )

    def get_rates(self) -> dict[str, float]:
        """Return the exchange-rate table, refreshing it when stale."""
        now = time.time()
        if self._is_stale(now):
            try:
                resp = self.session.get(
                    self.settings.EXCHANGE_RATE_URL,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                if resp.status_code != 200:
                    raise CurrencyError(
                        f"Exchange rate API returned HTTP {resp.status_code}"
                    )
                self._rates = dict(resp.json()["rates"])
                self._updated_at = now
                logger.info(
                    "Exchange rates updated (%d currencies)",
                    len(self._rates),
                )
            except Exception as exc:
                logger.error(
                    "Error fetching exchange rates: %s",
                    exc,
                    exc_info=True,
                )
                if self._rates is None:
                    raise CurrencyError(
                        "Unable to fetch exchange rates"
                    ) from exc

        rates = self._rates
        if rates is None:
            raise CurrencyError("Exchange rates unavailable")
        return rates

    def convert(
        self,
        from_currency: str,
        to_currency: str,
        amount: float = 1.0,
    ) -> dict[str, object]:
        """Convert *amount* of *from_currency* into *to_currency*."""
        rates = self.get_rates()
        if from_currency not in rates or to_currency not in rates:
            raise UnsupportedCurrencyError(list(rates)[:20])

        rate = rates[to_currency] / rates[from_currency]
        converted = amount / rates[from_currency] * rates[to_currency]
        return {
            "from": from_currency,
            "to": to_currency,
            "amount": amount,
            "convertedAmount": round(converted, 2),
            "rate": rate,
            "lastUpdated": self.last_updated,
        }
