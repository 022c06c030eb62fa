"""
HTTP client for querying the Cloudflare D1 stats database.

Each public method is one independent read used by the all-stats fan-out.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx

from .models import DateRange, StatsFilters, TimeUnit


class QueryError(Exception):
    """Raised when D1 reports a failed query."""
    pass


# Filter key -> page_views column (or SQL expression)
FILTER_COLUMNS = {
    "url": "url",
    "referrer": "referrer_domain",
    "title": "page_title",
    "query": "url_query",
    "host": "hostname",
    "os": "os",
    "browser": "browser",
    "device": "device_type",
    "country": "country",
    "region": "region",
    "city": "city",
    "language": "language",
    "screen": "(screen_width || 'x' || screen_height)",
}

# Dimension -> column used for ranked metrics
PAGEVIEW_DIMENSIONS = {
    "url": "url",
    "title": "page_title",
    "host": "hostname",
}

SESSION_DIMENSIONS = {
    "referrer": "referrer_domain",
    "browser": "browser",
    "os": "os",
    "device": "device_type",
    "country": "country",
    "region": "region",
    "city": "city",
    "language": "language",
    "screen": "(screen_width || 'x' || screen_height)",
}

UNIT_FORMATS = {
    "year": "%Y-01-01 00:00:00",
    "month": "%Y-%m-01 00:00:00",
    "day": "%Y-%m-%d 00:00:00",
    "hour": "%Y-%m-%d %H:00:00",
}


def _sql_timestamp(value: datetime) -> str:
    """Format a datetime the way page_views.timestamp is stored (UTC)."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _offset_modifier(tz_name: str, at: datetime) -> str:
    """SQLite datetime() modifier shifting UTC into the given zone.

    The offset is taken at the start of the range, so a DST change inside
    the range is not reflected.
    """
    offset = at.astimezone(ZoneInfo(tz_name)).utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds() // 60)
    return f"{minutes:+d} minutes"


class StatsClient:
    """Client for querying website stats from Cloudflare D1."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        timeout: float = 30.0,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.timeout = timeout
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: Optional[list] = None) -> list[dict]:
        """Execute a SQL query against D1."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/query",
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                json={"sql": sql, "params": params or []},
            )
            response.raise_for_status()
            data = response.json()

            if not data.get("success"):
                raise QueryError(f"D1 query failed: {data.get('errors')}")

            results = data.get("result", [])
            if results and len(results) > 0:
                return results[0].get("results", [])
            return []

    def _build_filter_sql(self, filters: Optional[StatsFilters]) -> tuple[str, list]:
        """Build SQL WHERE clauses from filters.

        Uses parameterized queries to prevent SQL injection.
        Returns (sql_string, params_list) tuple.
        """
        if not filters:
            return "", []

        clauses = []
        params = []

        for key, value in filters.active_filters().items():
            clauses.append(f"AND {FILTER_COLUMNS[key]} = ?")
            params.append(value)

        return " ".join(clauses), params

    def _range_params(self, website_id: str, date_range: DateRange) -> list:
        return [website_id, _sql_timestamp(date_range.start), _sql_timestamp(date_range.end)]

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    async def get_website_stats(
        self,
        website_id: str,
        date_range: DateRange,
        filters: Optional[StatsFilters] = None,
    ) -> List[Dict[str, Any]]:
        """Get pageviews, visitors, visits, bounces and total time for a range.

        A visit with a single pageview counts as a bounce. Total time is the
        sum of each visit's first-to-last pageview span in seconds.
        """
        filter_sql, filter_params = self._build_filter_sql(filters)

        return await self._query(
            f"""
            SELECT
                SUM(t.c) as pageviews,
                COUNT(DISTINCT t.visitor_hash) as visitors,
                COUNT(DISTINCT t.session_id) as visits,
                SUM(CASE WHEN t.c = 1 THEN 1 ELSE 0 END) as bounces,
                SUM(t.max_time - t.min_time) as totaltime
            FROM (
                SELECT
                    session_id,
                    visitor_hash,
                    COUNT(*) as c,
                    MIN(CAST(strftime('%s', timestamp) AS INTEGER)) as min_time,
                    MAX(CAST(strftime('%s', timestamp) AS INTEGER)) as max_time
                FROM page_views
                WHERE site = ? AND timestamp >= ? AND timestamp < ?
                    AND is_bot = 0 {filter_sql}
                GROUP BY session_id, visitor_hash
            ) t
            """,
            self._range_params(website_id, date_range) + filter_params,
        )

    async def get_website_session_stats(
        self,
        website_id: str,
        date_range: DateRange,
        filters: Optional[StatsFilters] = None,
    ) -> List[Dict[str, Any]]:
        """Get session-level totals (pageviews, visitors, visits, countries, events)."""
        filter_sql, filter_params = self._build_filter_sql(filters)

        return await self._query(
            f"""
            SELECT
                COUNT(*) as pageviews,
                COUNT(DISTINCT visitor_hash) as visitors,
                COUNT(DISTINCT session_id) as visits,
                COUNT(DISTINCT country) as countries,
                (
                    SELECT COUNT(*) FROM events
                    WHERE site = ? AND timestamp >= ? AND timestamp < ?
                ) as events
            FROM page_views
            WHERE site = ? AND timestamp >= ? AND timestamp < ?
                AND is_bot = 0 {filter_sql}
            """,
            self._range_params(website_id, date_range)
            + self._range_params(website_id, date_range)
            + filter_params,
        )

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    async def _get_time_series(
        self,
        count_sql: str,
        website_id: str,
        date_range: DateRange,
        unit: TimeUnit,
        tz_name: str,
        filters: Optional[StatsFilters],
    ) -> List[Dict[str, Any]]:
        if unit not in UNIT_FORMATS:
            raise ValueError(f"Unknown time unit: {unit}")

        filter_sql, filter_params = self._build_filter_sql(filters)
        bucket = f"strftime('{UNIT_FORMATS[unit]}', datetime(timestamp, ?))"

        return await self._query(
            f"""
            SELECT
                {bucket} as t,
                {count_sql} as y
            FROM page_views
            WHERE site = ? AND timestamp >= ? AND timestamp < ?
                AND is_bot = 0 {filter_sql}
            GROUP BY t
            ORDER BY t ASC
            """,
            [_offset_modifier(tz_name, date_range.start)]
            + self._range_params(website_id, date_range)
            + filter_params,
        )

    async def get_pageview_stats(
        self,
        website_id: str,
        date_range: DateRange,
        unit: TimeUnit,
        tz_name: str,
        filters: Optional[StatsFilters] = None,
    ) -> List[Dict[str, Any]]:
        """Get pageviews per unit as [{t, y}]."""
        return await self._get_time_series(
            "COUNT(*)", website_id, date_range, unit, tz_name, filters
        )

    async def get_session_stats(
        self,
        website_id: str,
        date_range: DateRange,
        unit: TimeUnit,
        tz_name: str,
        filters: Optional[StatsFilters] = None,
    ) -> List[Dict[str, Any]]:
        """Get distinct sessions per unit as [{t, y}]."""
        return await self._get_time_series(
            "COUNT(DISTINCT session_id)", website_id, date_range, unit, tz_name, filters
        )

    # =========================================================================
    # RANKED METRICS
    # =========================================================================

    async def _get_metrics(
        self,
        column: str,
        count_sql: str,
        website_id: str,
        date_range: DateRange,
        filters: Optional[StatsFilters],
        limit: int,
    ) -> List[Dict[str, Any]]:
        filter_sql, filter_params = self._build_filter_sql(filters)

        return await self._query(
            f"""
            SELECT
                {column} as x,
                {count_sql} as y
            FROM page_views
            WHERE site = ? AND timestamp >= ? AND timestamp < ?
                AND is_bot = 0 AND {column} IS NOT NULL AND {column} != ''
                {filter_sql}
            GROUP BY x
            ORDER BY y DESC
            LIMIT ?
            """,
            self._range_params(website_id, date_range) + filter_params + [limit],
        )

    async def get_pageview_metrics(
        self,
        website_id: str,
        dimension: str,
        date_range: DateRange,
        filters: Optional[StatsFilters] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """Get top values of a page dimension ranked by pageviews."""
        if dimension not in PAGEVIEW_DIMENSIONS:
            raise ValueError(f"Unknown pageview dimension: {dimension}")

        return await self._get_metrics(
            PAGEVIEW_DIMENSIONS[dimension], "COUNT(*)",
            website_id, date_range, filters, limit,
        )

    async def get_session_metrics(
        self,
        website_id: str,
        dimension: str,
        date_range: DateRange,
        filters: Optional[StatsFilters] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """Get top values of a session dimension ranked by distinct sessions."""
        if dimension not in SESSION_DIMENSIONS:
            raise ValueError(f"Unknown session dimension: {dimension}")

        return await self._get_metrics(
            SESSION_DIMENSIONS[dimension], "COUNT(DISTINCT session_id)",
            website_id, date_range, filters, limit,
        )

    # =========================================================================
    # EVENT DATA
    # =========================================================================

    async def get_event_data_stats(
        self,
        website_id: str,
        date_range: DateRange,
    ) -> Dict[str, Any]:
        """Count events carrying data, distinct properties, and data records.

        Rows with malformed event_data JSON make D1 reject the whole query.
        """
        results = await self._query(
            """
            SELECT
                COUNT(DISTINCT e.id) as events,
                COUNT(DISTINCT e.event_name || '.' || j.key) as properties,
                COUNT(*) as records
            FROM events e, json_each(e.event_data) j
            WHERE e.site = ? AND e.timestamp >= ? AND e.timestamp < ?
            """,
            self._range_params(website_id, date_range),
        )

        row = results[0] if results else {}
        return {
            "events": row.get("events") or 0,
            "properties": row.get("properties") or 0,
            "records": row.get("records") or 0,
        }
