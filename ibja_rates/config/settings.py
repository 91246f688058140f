# ibja_rates/config/settings.py

"""Central configuration for the IBJA rates API."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the IBJA rates API."""

    # --- Server ---
    HOST: str = os.getenv("IBJA_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("IBJA_PORT", "3000"))

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("IBJA_LOG_LEVEL", "WARNING")  # Console level

    # --- Scraping ---
    SOURCE_URL: str = "https://www.ibjarates.com"
    REQUEST_DELAY: float = 0.5          # Seconds before each page fetch
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 60.0  # Seconds until half-open
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    # Lower-case fragments of anti-bot interstitials
    CHALLENGE_MARKERS: list[str] = [
        "cf-browser-verification",
        "challenge-platform",
        "just a moment...",
        "verify you are human",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Rate history ---
    MAX_HISTORY_SIZE: int = int(
        os.getenv("IBJA_MAX_HISTORY_SIZE", "1000")
    )
    RETENTION_DAYS: int = int(os.getenv("IBJA_RETENTION_DAYS", "30"))
    TIMEZONE: str = os.getenv("IBJA_TIMEZONE", "Asia/Kolkata")

    # --- Rate limiting (points per window, seconds) ---
    RATE_LIMIT_WINDOW: int = 15 * 60
    RATE_LIMIT_TIERS: dict[str, int] = {
        "general": 100,
        "data_heavy": 20,
        "utility": 50,
    }

    # --- Cache-Control s-maxage per endpoint family (seconds) ---
    CACHE_LATEST: int = 7200
    CACHE_RSS: int = 3600
    CACHE_DAILY_CHANGES: int = 1800
    CACHE_HOURLY: int = 900
    CACHE_WEEKLY: int = 3600
    CACHE_CONVERT: int = 3600
    CACHE_PDF: int = 3600
    CACHE_UPTIME: int = 60

    # --- Currency conversion ---
    EXCHANGE_RATE_URL: str = (
        "https://api.exchangerate-api.com/v4/latest/INR"
    )
    EXCHANGE_RATE_TTL: float = 3600.0   # Seconds before a refresh

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "ibja_rates" / "config" / "selectors.json"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources polled by the health checker ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "ibja",
            "label": "IBJA Rates",
            "url": "https://www.ibjarates.com",
        },
        {
            "id": "exchange_rates",
            "label": "ExchangeRate-API",
            "url": "https://api.exchangerate-api.com/v4/latest/INR",
        },
    ]
