"""
Core stats module.

Contains the data models, the D1 query client, and the all-stats fan-out.
"""

from .aggregator import StatsAggregator, assemble_response
from .client import QueryError, StatsClient
from .dates import get_compare_date, parse_duration, resolve_date_range
from .formatters import (
    combine_languages,
    format_comparison_stats,
    format_session_stats,
    to_number,
)
from .models import (
    AllStatsResponse,
    ComparisonStat,
    DateRange,
    EventDataStats,
    LanguageBucket,
    MetricPoint,
    SessionStat,
    StatsFilters,
    StatsRequest,
    TimePoint,
    Timeseries,
    TopMetrics,
)

__all__ = [
    "StatsFilters", "DateRange", "StatsRequest",
    "MetricPoint", "TimePoint", "EventDataStats",
    "ComparisonStat", "SessionStat", "LanguageBucket",
    "Timeseries", "TopMetrics", "AllStatsResponse",
    "resolve_date_range", "get_compare_date", "parse_duration",
    "to_number", "format_comparison_stats", "format_session_stats", "combine_languages",
    "StatsClient", "QueryError",
    "StatsAggregator", "assemble_response",
]
