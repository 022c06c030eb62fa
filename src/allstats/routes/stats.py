"""
All-stats API route.

Parses and validates the request, checks access, and hands off to the
stats aggregator.
"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from fastapi import APIRouter, Header, HTTPException, Query

from ..config import StatsConfig, verify_passkey
from ..core.aggregator import StatsAggregator
from ..core.client import QueryError, StatsClient
from ..core.dates import get_compare_date, resolve_date_range
from ..core.models import AllStatsResponse, DateRange, StatsFilters, StatsRequest, TimeUnit

logger = logging.getLogger(__name__)

PASSKEY_HEADER = "X-Stats-Passkey"


def _parse_stats_range(start_at: int, end_at: int) -> DateRange:
    """Validate epoch-millisecond bounds and build the primary range.

    Raises:
        HTTPException: If the range is empty or inverted
    """
    if end_at <= start_at:
        raise HTTPException(
            status_code=400,
            detail="endAt must be after startAt"
        )
    return resolve_date_range(start_at, end_at)


def _validate_timezone(tz_name: str | None) -> str | None:
    if tz_name is None:
        return None
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(
            status_code=400,
            detail=f"Unknown timezone: {tz_name}"
        ) from None
    return tz_name


def create_stats_router(config: StatsConfig, client: StatsClient | None = None) -> APIRouter:
    """Create the all-stats router.

    Args:
        config: Stats configuration
        client: Optional pre-built query client (defaults to one built from config)
    """
    router = APIRouter(tags=["stats"])

    if client is None:
        client = StatsClient(
            d1_database_id=config.d1_database_id,
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            timeout=config.query_timeout_seconds,
        )
    aggregator = StatsAggregator(client, sort_languages=config.sort_languages)

    def _check_auth(website_id: str, passkey: str | None) -> bool:
        """Check the passkey (if configured) and the website allow-list."""
        if config.has_auth and not (passkey and verify_passkey(config.passkey, passkey)):
            return False
        return config.can_view_website(website_id)

    @router.get("/websites/{website_id}/all-stats", response_model=AllStatsResponse)
    async def all_stats(
        website_id: str,
        start_at: int = Query(..., alias="startAt", description="Range start (epoch ms)"),
        end_at: int = Query(..., alias="endAt", description="Range end (epoch ms)"),
        unit: TimeUnit | None = None,
        timezone: str | None = None,
        compare: str | None = None,
        limit: int | None = Query(None, ge=0),
        url: str | None = None,
        referrer: str | None = None,
        title: str | None = None,
        query: str | None = None,
        host: str | None = None,
        os: str | None = None,
        browser: str | None = None,
        device: str | None = None,
        country: str | None = None,
        region: str | None = None,
        city: str | None = None,
        language: str | None = None,
        screen: str | None = None,
        passkey: str | None = Header(None, alias=PASSKEY_HEADER),
    ):
        """Return stats, session stats, timeseries, top metrics and event data in one call."""
        if not _check_auth(website_id, passkey):
            raise HTTPException(status_code=401, detail="Unauthorized")

        date_range = _parse_stats_range(start_at, end_at)
        request = StatsRequest(
            website_id=website_id,
            date_range=date_range,
            compare_range=get_compare_date(compare, date_range),
            filters=StatsFilters(
                url=url, referrer=referrer, title=title, query=query, host=host,
                os=os, browser=browser, device=device, country=country,
                region=region, city=city, language=language, screen=screen,
            ),
            limit=config.default_limit if limit is None else limit,
            unit=unit,
            timezone=_validate_timezone(timezone),
        )

        try:
            return await aggregator.aggregate(request)
        except (QueryError, httpx.HTTPError) as e:
            logger.error(f"All-stats for website '{website_id}' failed: {e}")
            raise HTTPException(status_code=502, detail="Stats query failed") from e

    return router
