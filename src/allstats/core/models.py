"""
Pydantic models for aggregated website stats.
"""
from datetime import datetime, timedelta, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TimeUnit = Literal["year", "month", "day", "hour"]

Number = int | float


# =============================================================================
# Request Models
# =============================================================================

class StatsFilters(BaseModel):
    """Filters applied to every stats sub-query.

    All filters use parameterized queries to prevent SQL injection.
    Multiple filters are AND'd together.
    """
    url: str | None = None
    referrer: str | None = None
    title: str | None = None
    query: str | None = None
    host: str | None = None
    os: str | None = None
    browser: str | None = None
    device: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    language: str | None = None
    screen: str | None = None

    model_config = ConfigDict(frozen=True)

    def is_empty(self) -> bool:
        """Check if all filters are None/empty."""
        return all(
            getattr(self, field) is None
            for field in self.__class__.model_fields.keys()
        )

    def active_filters(self) -> dict[str, str]:
        """Return dict of active (non-None) filters."""
        return {
            k: v for k, v in self.model_dump().items()
            if v is not None
        }


class DateRange(BaseModel):
    """Half-open [start, end) window in UTC."""
    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_epoch_ms(cls, start_at: int, end_at: int) -> "DateRange":
        return cls(
            start=datetime.fromtimestamp(start_at / 1000, tz=timezone.utc),
            end=datetime.fromtimestamp(end_at / 1000, tz=timezone.utc),
        )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class StatsRequest(BaseModel):
    """Everything one all-stats call needs. Immutable for the request."""
    website_id: str
    date_range: DateRange
    compare_range: DateRange | None = None
    filters: StatsFilters = Field(default_factory=StatsFilters)
    limit: int = Field(default=10, ge=0)
    unit: TimeUnit | None = None
    timezone: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_timeseries(self) -> bool:
        """Timeseries are only fetched when both unit and timezone are set."""
        return bool(self.unit and self.timezone)


# =============================================================================
# Collaborator Row Models
# =============================================================================

class MetricPoint(BaseModel):
    """One ranked dimension value (e.g. a URL and its view count)."""
    x: str
    y: Number


class TimePoint(BaseModel):
    """A single point in a time series."""
    t: str
    y: Number


class EventDataStats(BaseModel):
    """Counts of custom event data for the range."""
    events: Number = 0
    properties: Number = 0
    records: Number = 0


# =============================================================================
# Formatted Stats Models
# =============================================================================

class ComparisonStat(BaseModel):
    """A metric with its value from the comparison window."""
    value: Number = 0
    prev: Number = 0


class SessionStat(BaseModel):
    """A session metric (no comparison)."""
    value: Number = 0


class LanguageBucket(BaseModel):
    """Visits folded into a base language ("en-US" -> "en")."""
    code: str
    count: Number


# =============================================================================
# Response Models
# =============================================================================

class Timeseries(BaseModel):
    pageviews: list[TimePoint] = []
    sessions: list[TimePoint] = []


class TopMetrics(BaseModel):
    urls: list[MetricPoint] = []
    referrers: list[MetricPoint] = []
    browsers: list[MetricPoint] = []
    os: list[MetricPoint] = []
    devices: list[MetricPoint] = []
    countries: list[MetricPoint] = []
    languages: list[MetricPoint] = []


class AllStatsResponse(BaseModel):
    """Complete all-stats response.

    Serializes with camelCase keys (``sessionStats``, ``topMetrics``,
    ``eventData``) when dumped by alias.
    """
    stats: dict[str, ComparisonStat]
    session_stats: dict[str, SessionStat] = Field(alias="sessionStats")
    timeseries: Timeseries
    top_metrics: TopMetrics = Field(alias="topMetrics")
    event_data: EventDataStats = Field(alias="eventData")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
