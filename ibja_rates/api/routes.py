# ibja_rates/api/routes.py

"""HTTP endpoints for current rates, feeds, conversion and change tracking."""

import math
import time
from datetime import datetime, timezone

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    Response,
)

from ibja_rates.config.settings import Settings
from ibja_rates.services.currency import (
    CurrencyError,
    UnsupportedCurrencyError,
)
from ibja_rates.services.rates_service import RatesService
from ibja_rates.services.rss import (
    filter_items_by_month,
    generate_rss_feed,
    parse_month_filter,
)

router = APIRouter()

AVAILABLE_ENDPOINTS: list[str] = [
    "/",
    "/latest",
    "/latest/rss",
    "/history",
    "/silver",
    "/silver/latest",
    "/silver/latest/rss",
    "/platinum",
    "/platinum/latest",
    "/platinum/latest/rss",
    "/convert",
    "/pdf",
    "/pdf/last30",
    "/chart",
    "/chart/comparison",
    "/changes",
    "/changes/hourly",
    "/changes/weekly",
    "/changes/highs",
    "/uptime",
]

_FEEDS: dict[str, dict[str, str]] = {
    "gold": {
        "title": "IBJA Gold Rates RSS Feed",
        "description": (
            "Historical and current gold rates from India Bullion and "
            "Jewellers Association (IBJA)"
        ),
        "endpoint": "/latest",
    },
    "silver": {
        "title": "IBJA Silver Rates RSS Feed",
        "description": (
            "Historical and current silver rates from India Bullion and "
            "Jewellers Association (IBJA)"
        ),
        "endpoint": "/silver/latest",
    },
    "platinum": {
        "title": "IBJA Platinum Rates RSS Feed",
        "description": (
            "Current platinum rates from India Bullion and Jewellers "
            "Association (IBJA)"
        ),
        "endpoint": "/platinum/latest",
    },
}


def get_service(request: Request) -> RatesService:
    return request.app.state.service


def client_key(request: Request) -> str | None:
    """First hop of X-Forwarded-For, else the socket peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def rate_limited(tier: str):
    """Dependency charging one point against the *tier* limiter."""

    async def dependency(request: Request, response: Response) -> None:
        key = client_key(request)
        if not key:
            raise HTTPException(
                status_code=400,
                detail={"error": "Could not identify client IP"},
            )

        limiter = request.app.state.limiters[tier]
        result = limiter.consume(key)
        reset_at = time.time() + result.ms_before_next / 1000
        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(math.ceil(reset_at)),
        }

        if not result.allowed:
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "Rate limit exceeded",
                    "message": "Too many requests. Please try again later.",
                    "retryAfter": result.retry_after,
                    "limit": result.limit,
                    "remaining": 0,
                    "resetTime": datetime.fromtimestamp(
                        reset_at, tz=timezone.utc,
                    ).isoformat(),
                },
                headers={**headers, "Retry-After": str(result.retry_after)},
            )
        response.headers.update(headers)

    return Depends(dependency)


def _cache(response: Response, seconds: int) -> None:
    response.headers["Cache-Control"] = (
        f"s-maxage={seconds}, stale-while-revalidate"
    )


def _base_url(request: Request) -> str:
    proto = request.headers.get("x-forwarded-proto", "https")
    return f"{proto}://{request.headers.get('host', request.url.netloc)}"


# ── Welcome pages ────────────────────────────────────────


@router.get("/")
async def index(response: Response) -> dict[str, object]:
    _cache(response, Settings.CACHE_LATEST)
    return {
        "message": "Welcome to the IBJA Gold API",
        "documentation": "/docs",
        "endpoints": AVAILABLE_ENDPOINTS[1:],
        "description": "Fetches IBJA gold rates in India",
    }


@router.get("/silver")
async def silver_index(response: Response) -> dict[str, object]:
    _cache(response, Settings.CACHE_LATEST)
    return {
        "message": "Welcome to the IBJA Silver API",
        "endpoint1": "/latest",
        "endpoint2": "/latest/rss (RSS Feed with optional ?m=YYYY-MM filter)",
        "description": "Fetches IBJA silver rates in India",
    }


@router.get("/platinum")
async def platinum_index(response: Response) -> dict[str, object]:
    _cache(response, Settings.CACHE_LATEST)
    return {
        "message": "Welcome to the IBJA Platinum API",
        "endpoint1": "/latest",
        "endpoint2": "/latest/rss (RSS Feed with optional ?m=YYYY-MM filter)",
        "description": "Fetches IBJA platinum rates in India",
    }


@router.get("/pdf")
async def pdf_index(response: Response) -> dict[str, object]:
    _cache(response, Settings.CACHE_PDF)
    return {
        "message": "IBJA PDF Downloads API",
        "endpoint": "/last30",
        "description": "Returns PDF download links for historical data",
    }


# ── Current rates ────────────────────────────────────────


async def _latest(
    metal: str, response: Response, service: RatesService,
) -> dict[str, object]:
    rates = await service.latest_rates(metal)
    if rates is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": f"{metal.capitalize()} rates not available currently."
            },
        )
    _cache(response, Settings.CACHE_LATEST)
    return rates


@router.get("/latest", dependencies=[rate_limited("general")])
async def latest_gold(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    return await _latest("gold", response, service)


@router.get("/silver/latest", dependencies=[rate_limited("general")])
async def latest_silver(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    return await _latest("silver", response, service)


@router.get("/platinum/latest", dependencies=[rate_limited("general")])
async def latest_platinum(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    return await _latest("platinum", response, service)


# ── RSS feeds ────────────────────────────────────────────


async def _feed(
    metal: str,
    month: str | None,
    request: Request,
    response: Response,
    service: RatesService,
) -> Response:
    feed = _FEEDS[metal]
    month_filter = parse_month_filter(month)

    items = await service.rss_items(metal)
    if not items:
        raise HTTPException(
            status_code=404,
            detail={
                "error": (
                    f"{metal.capitalize()} rates not available for RSS feed"
                )
            },
        )

    filtered = filter_items_by_month(items, month_filter)
    if not filtered:
        raise HTTPException(
            status_code=404,
            detail={
                "error": (
                    f"No {metal} rate data available for "
                    f"{month_filter.month_string}"
                    if month_filter
                    else f"No {metal} rate data available"
                ),
                "availableItems": len(items),
            },
        )

    content = generate_rss_feed(
        feed["title"],
        feed["description"],
        filtered,
        _base_url(request),
        feed["endpoint"],
    )
    _cache(response, Settings.CACHE_RSS)
    feed_response = Response(
        content=content, media_type="application/rss+xml; charset=UTF-8",
    )
    feed_response.headers.update({
        name: value
        for name, value in response.headers.items()
        if name.lower() != "content-length"
    })
    return feed_response


@router.get("/latest/rss", dependencies=[rate_limited("general")])
async def gold_feed(
    request: Request,
    response: Response,
    m: str | None = None,
    service: RatesService = Depends(get_service),
) -> Response:
    return await _feed("gold", m, request, response, service)


@router.get("/silver/latest/rss", dependencies=[rate_limited("general")])
async def silver_feed(
    request: Request,
    response: Response,
    m: str | None = None,
    service: RatesService = Depends(get_service),
) -> Response:
    return await _feed("silver", m, request, response, service)


@router.get("/platinum/latest/rss", dependencies=[rate_limited("general")])
async def platinum_feed(
    request: Request,
    response: Response,
    m: str | None = None,
    service: RatesService = Depends(get_service),
) -> Response:
    return await _feed("platinum", m, request, response, service)


# ── History, charts and downloads ────────────────────────


@router.get("/history", dependencies=[rate_limited("data_heavy")])
async def history(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    tables = await service.history_tables()
    _cache(response, Settings.CACHE_LATEST)
    return {
        "updated": datetime.now(timezone.utc).isoformat(),
        "am": tables["am"],
        "pm": tables["pm"],
    }


@router.get("/chart", dependencies=[rate_limited("data_heavy")])
@router.get("/chart/comparison", dependencies=[rate_limited("data_heavy")])
async def chart(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    data = await service.chart_data()
    _cache(response, Settings.CACHE_LATEST)
    return data


@router.get("/pdf/last30", dependencies=[rate_limited("data_heavy")])
async def pdf_last30(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    link = await service.pdf_link()
    if link is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "PDF link not found",
                "message": (
                    "Could not find the last 30 days PDF on the website"
                ),
            },
        )
    _cache(response, Settings.CACHE_PDF)
    return link


# ── Utilities ────────────────────────────────────────────


def _parse_amount(raw: str | None) -> float:
    try:
        amount = float(raw) if raw else 0.0
    except ValueError:
        amount = 0.0
    return amount if amount and math.isfinite(amount) else 1.0


@router.get("/convert", dependencies=[rate_limited("utility")])
async def convert(
    response: Response,
    to: str | None = None,
    amount: str | None = None,
    from_currency: str = Query("INR", alias="from"),
    service: RatesService = Depends(get_service),
) -> dict[str, object]:
    if not to:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing required parameter: to",
                "usage": "/convert?from=INR&to=USD&amount=1000",
            },
        )
    try:
        result = await service.convert(
            from_currency, to, _parse_amount(amount),
        )
    except UnsupportedCurrencyError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Unsupported currency",
                "supported": exc.supported,
            },
        ) from exc
    except CurrencyError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": "Currency conversion failed"},
        ) from exc
    _cache(response, Settings.CACHE_CONVERT)
    return result


@router.get("/uptime")
async def uptime(request: Request, response: Response) -> dict[str, object]:
    _cache(response, Settings.CACHE_UPTIME)
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - request.app.state.started_at,
        "message": "IBJA API is running",
    }


# ── Change tracking ──────────────────────────────────────


@router.get("/changes", dependencies=[rate_limited("general")])
async def daily_changes(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    payload = await service.daily_changes()
    if payload is None:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to fetch current rates"},
        )
    if payload.get("changes") is not None:
        _cache(response, Settings.CACHE_DAILY_CHANGES)
    return payload


@router.get("/changes/hourly", dependencies=[rate_limited("general")])
async def hourly_changes(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    payload = await service.hourly_tracking()
    if "hourlyData" in payload:
        _cache(response, Settings.CACHE_HOURLY)
    return payload


@router.get("/changes/weekly", dependencies=[rate_limited("general")])
async def weekly_changes(
    response: Response, service: RatesService = Depends(get_service),
) -> dict[str, object]:
    payload = await service.weekly_trends()
    if payload is None:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to fetch current rates"},
        )
    if "weeklyChanges" in payload:
        _cache(response, Settings.CACHE_WEEKLY)
    return payload


@router.get("/changes/highs", dependencies=[rate_limited("general")])
@router.get("/changes/daily-highs", dependencies=[rate_limited("general")])
async def daily_highs(
    response: Response,
    date: str | None = None,
    service: RatesService = Depends(get_service),
) -> dict[str, object]:
    payload = await service.daily_high_low(date)
    if payload is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "No rate data found for the specified date",
                "date": date or service.today(),
            },
        )
    _cache(response, Settings.CACHE_DAILY_CHANGES)
    return payload
