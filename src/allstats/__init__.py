"""
Aggregated website stats in a single call.

Usage:
    from fastapi import FastAPI
    from allstats import setup_stats

    stats = setup_stats(
        d1_database_id="your-d1-id",
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
    )

    app = FastAPI()
    app.include_router(stats.router, prefix="/api")

    # GET /api/websites/{website_id}/all-stats?startAt=...&endAt=...
"""

from .config import StatsConfig
from .core import AllStatsResponse, StatsAggregator, StatsClient, StatsFilters, StatsRequest
from .routes import create_stats_router

__version__ = "0.1.0"
__all__ = [
    "setup_stats", "Stats", "StatsConfig",
    "StatsClient", "StatsAggregator",
    "StatsRequest", "StatsFilters", "AllStatsResponse",
]


class Stats:
    """Main stats interface: a query client, an aggregator and a router."""

    def __init__(self, config: StatsConfig):
        self.config = config
        self.client = StatsClient(
            d1_database_id=config.d1_database_id,
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            timeout=config.query_timeout_seconds,
        )
        self.aggregator = StatsAggregator(self.client, sort_languages=config.sort_languages)
        self.router = create_stats_router(config, client=self.client)

    async def all_stats(self, request: StatsRequest) -> AllStatsResponse:
        """Run the all-stats fan-out directly, without going through HTTP."""
        return await self.aggregator.aggregate(request)


def setup_stats(
    d1_database_id: str,
    cf_account_id: str,
    cf_api_token: str,
    website_ids: list[str] | None = None,
    passkey: str = None,
    sort_languages: bool = False,
) -> Stats:
    """
    Set up the all-stats API.

    Args:
        d1_database_id: Cloudflare D1 database ID
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with D1 read access
        website_ids: Optional allow-list of website ids this instance serves
        passkey: Optional passkey (ideally from hash_passkey()) callers must
                 send in the X-Stats-Passkey header.
        sort_languages: Re-rank combined languages by merged count

    Returns:
        Stats instance with router and all_stats()
    """
    return Stats(
        StatsConfig(
            d1_database_id=d1_database_id,
            cf_account_id=cf_account_id,
            cf_api_token=cf_api_token,
            website_ids=website_ids or [],
            passkey=passkey,
            sort_languages=sort_languages,
        )
    )
