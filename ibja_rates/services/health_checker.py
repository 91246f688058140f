# ibja_rates/services/health_checker.py

"""Upstream connectivity health checker."""

import asyncio
import logging
import time
from dataclasses import dataclass

from curl_cffi import requests as curl_requests

from ibja_rates.config.settings import Settings

logger = logging.getLogger("ibja_rates.health")

_HEALTH_TIMEOUT = 10  # seconds per source
_SLOW_THRESHOLD_MS = 5000


@dataclass
class HealthResult:
    """Result of a single source health check."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def check_source(source: dict[str, str]) -> HealthResult:
    """Check a single upstream source for connectivity."""
    source_id = source["id"]
    session = curl_requests.Session(
        impersonate=Settings.IMPERSONATE_BROWSER
    )

    start = time.monotonic()
    try:
        resp = session.get(
            source["url"],
            headers=Settings.DEFAULT_HEADERS,
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                source_id=source_id,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )

        if elapsed_ms > _SLOW_THRESHOLD_MS:
            return HealthResult(
                source_id=source_id,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )

        return HealthResult(
            source_id=source_id,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )
    finally:
        session.close()


class HealthChecker:
    """Runs concurrent health checks against all upstream sources."""

    def __init__(self) -> None:
        self.sources = Settings.AVAILABLE_SOURCES

    async def check_all(self) -> list[HealthResult]:
        """Check every registered source concurrently."""
        tasks = [
            asyncio.to_thread(check_source, src)
            for src in self.sources
        ]
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
