"""
All-stats fan-out.

One call issues every sub-query the dashboard needs at once, waits for all
of them, and reshapes the results into a single response.
"""
import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Awaitable

from .client import StatsClient
from .formatters import (
    combine_languages,
    first_row,
    format_comparison_stats,
    format_session_stats,
    to_number,
)
from .models import (
    AllStatsResponse,
    DateRange,
    EventDataStats,
    LanguageBucket,
    MetricPoint,
    StatsRequest,
    TimePoint,
    Timeseries,
    TopMetrics,
)

logger = logging.getLogger(__name__)

# Response key -> (client method, dimension)
TOP_METRICS = {
    "urls": ("get_pageview_metrics", "url"),
    "referrers": ("get_session_metrics", "referrer"),
    "browsers": ("get_session_metrics", "browser"),
    "os": ("get_session_metrics", "os"),
    "devices": ("get_session_metrics", "device"),
    "countries": ("get_session_metrics", "country"),
    "languages": ("get_session_metrics", "language"),
}


async def _empty() -> list:
    return []


async def _event_data_or_default(query: Awaitable[Mapping[str, Any]]) -> EventDataStats:
    """Event data is optional: a failed query yields all-zero counts.

    Only the query itself is guarded. Null or malformed counts in a
    successful result are coerced field by field.
    """
    try:
        row = await query
    except Exception as e:
        logger.warning(f"Event data query failed, using zero counts: {e}")
        return EventDataStats()

    if not isinstance(row, Mapping):
        row = {}
    return EventDataStats(
        events=to_number(row.get("events")),
        properties=to_number(row.get("properties")),
        records=to_number(row.get("records")),
    )


def _metric(row: Mapping[str, Any] | MetricPoint) -> MetricPoint:
    if isinstance(row, MetricPoint):
        return row
    return MetricPoint(x=str(row.get("x") or ""), y=to_number(row.get("y")))


def _point(row: Mapping[str, Any] | TimePoint) -> TimePoint:
    if isinstance(row, TimePoint):
        return row
    return TimePoint(t=str(row.get("t") or ""), y=to_number(row.get("y")))


def _top(rows: Sequence[Mapping[str, Any] | MetricPoint], limit: int) -> list[MetricPoint]:
    return [_metric(row) for row in list(rows)[:limit]]


def assemble_response(
    stats: Mapping[str, Any],
    session_stats: Mapping[str, Any],
    pageviews: Sequence[Mapping[str, Any]],
    sessions: Sequence[Mapping[str, Any]],
    top_metrics: Mapping[str, Sequence[Mapping[str, Any]]],
    languages: Sequence[LanguageBucket],
    event_data: EventDataStats,
    limit: int,
) -> AllStatsResponse:
    """Compose formatted pieces into the fixed-shape response."""
    top = {
        key: _top(top_metrics.get(key) or [], limit)
        for key in TOP_METRICS if key != "languages"
    }
    top["languages"] = [
        MetricPoint(x=bucket.code, y=bucket.count) for bucket in languages[:limit]
    ]

    return AllStatsResponse(
        stats=stats,
        session_stats=session_stats,
        timeseries=Timeseries(
            pageviews=[_point(point) for point in pageviews],
            sessions=[_point(point) for point in sessions],
        ),
        top_metrics=TopMetrics(**top),
        event_data=event_data,
    )


class StatsAggregator:
    """Fans out the all-stats sub-queries and merges their results."""

    def __init__(self, client: StatsClient, sort_languages: bool = False):
        self.client = client
        self.sort_languages = sort_languages

    def _queries(self, request: StatsRequest) -> dict[str, Awaitable]:
        """Build the 13 named sub-query coroutines for a request."""
        client = self.client
        website_id = request.website_id
        date_range = request.date_range
        filters = request.filters

        # Without a comparison window the query still runs, over an empty
        # window, and its result is discarded.
        compare_range = request.compare_range or DateRange(
            start=date_range.start, end=date_range.start
        )

        queries: dict[str, Awaitable] = {
            "stats": client.get_website_stats(website_id, date_range, filters),
            "prev_stats": client.get_website_stats(website_id, compare_range, filters),
            "session_stats": client.get_website_session_stats(website_id, date_range, filters),
        }

        if request.has_timeseries:
            queries["pageviews"] = client.get_pageview_stats(
                website_id, date_range, request.unit, request.timezone, filters
            )
            queries["sessions"] = client.get_session_stats(
                website_id, date_range, request.unit, request.timezone, filters
            )
        else:
            queries["pageviews"] = _empty()
            queries["sessions"] = _empty()

        for key, (method, dimension) in TOP_METRICS.items():
            queries[key] = getattr(client, method)(
                website_id, dimension, date_range, filters, request.limit
            )

        queries["event_data"] = _event_data_or_default(
            client.get_event_data_stats(website_id, date_range)
        )
        return queries

    async def _gather(self, queries: dict[str, Awaitable]) -> dict[str, Any]:
        """Run all queries concurrently and wait for every one to settle.

        The first failure in declaration order is re-raised once all
        queries have finished.
        """
        names = list(queries.keys())
        coros = list(queries.values())

        logger.debug(f"Dispatching {len(coros)} stats queries")
        results = await asyncio.gather(*coros, return_exceptions=True)

        output = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(f"Query '{name}' failed: {result!r}")
                raise result
            output[name] = result

        return output

    async def aggregate(self, request: StatsRequest) -> AllStatsResponse:
        data = await self._gather(self._queries(request))

        comparison = first_row(data["prev_stats"]) if request.compare_range else None
        languages = combine_languages(data["languages"] or [], sort=self.sort_languages)

        return assemble_response(
            stats=format_comparison_stats(first_row(data["stats"]), comparison),
            session_stats=format_session_stats(first_row(data["session_stats"])),
            pageviews=data["pageviews"] or [],
            sessions=data["sessions"] or [],
            top_metrics=data,
            languages=languages,
            event_data=data["event_data"],
            limit=request.limit,
        )
