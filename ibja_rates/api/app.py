# ibja_rates/api/app.py

"""FastAPI application factory for the IBJA rates API."""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ibja_rates.api.routes import AVAILABLE_ENDPOINTS, router
from ibja_rates.scrapers.ibja_scraper import ScrapeError
from ibja_rates.services.rate_limiter import RateLimiter, build_limiters
from ibja_rates.services.rates_service import RatesService

logger = logging.getLogger("ibja_rates.api")


def create_app(
    service: RatesService | None = None,
    limiters: dict[str, RateLimiter] | None = None,
) -> FastAPI:
    """Build the API with its service and per-tier rate limiters."""
    app = FastAPI(
        title="IBJA Rates API",
        description=(
            "Gold, silver and platinum rates published by the India "
            "Bullion and Jewellers Association, with change tracking."
        ),
        version="1.0.0",
    )
    app.state.service = service or RatesService()
    app.state.limiters = limiters or build_limiters()
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Origin",
            "X-Requested-With",
            "Content-Type",
            "Accept",
            "Authorization",
        ],
    )
    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException,
    ) -> JSONResponse:
        if isinstance(exc.detail, dict):
            content = exc.detail
        elif exc.status_code == 404:
            content = {
                "error": "Endpoint not found",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            }
        else:
            content = {"error": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(ScrapeError)
    async def scrape_error_handler(
        request: Request, exc: ScrapeError,
    ) -> JSONResponse:
        logger.error(
            "Upstream fetch failed for %s: %s", request.url.path, exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch rates from IBJA"},
        )

    @app.exception_handler(Exception)
    async def server_error_handler(
        request: Request, exc: Exception,
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception in %s", request.url.path, exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )

    return app
