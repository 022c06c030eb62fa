"""
Pure reshaping of sub-query results into response pieces.

Nothing here does I/O; every function takes collaborator rows and returns
new values.
"""
import math
from collections.abc import Iterable, Mapping
from typing import Any

from .models import ComparisonStat, LanguageBucket, MetricPoint, Number, SessionStat


def to_number(value: Any) -> Number:
    """Coerce a collaborator value to a number, falling back to 0.

    None, non-numeric strings, NaN and infinities all become 0. D1 can hand
    back counts as strings, so numeric strings are parsed.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        try:
            value = float(value)
        except ValueError:
            return 0
    if not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        if value.is_integer():
            return int(value)
    return value


def first_row(rows: Iterable[Mapping[str, Any]] | Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return the single record of an aggregate query, or {} if there is none."""
    if rows is None:
        return {}
    if isinstance(rows, Mapping):
        return rows
    for row in rows:
        return row or {}
    return {}


def format_comparison_stats(
    primary: Mapping[str, Any],
    comparison: Mapping[str, Any] | None,
) -> dict[str, ComparisonStat]:
    """Pair each primary metric with its comparison-window value.

    Keys come from the primary row only; anything extra in the comparison
    row is ignored.
    """
    comparison = comparison or {}
    return {
        key: ComparisonStat(
            value=to_number(primary.get(key)),
            prev=to_number(comparison.get(key)),
        )
        for key in primary
    }


def format_session_stats(row: Mapping[str, Any]) -> dict[str, SessionStat]:
    return {key: SessionStat(value=to_number(row.get(key))) for key in row}


def combine_languages(
    rows: Iterable[MetricPoint | Mapping[str, Any]],
    sort: bool = False,
) -> list[LanguageBucket]:
    """Fold locales into base-language buckets ("en-US" + "en-GB" -> "en").

    Buckets keep the order in which each language first appears in the
    ranked input, so a merged bucket can end up out of count order. Pass
    ``sort=True`` to re-rank by merged count.
    """
    buckets: dict[str, LanguageBucket] = {}

    for row in rows:
        if isinstance(row, MetricPoint):
            locale, count = row.x, row.y
        else:
            locale, count = row.get("x"), row.get("y")

        code = str(locale or "").lower().split("-")[0]
        count = to_number(count)

        if code in buckets:
            buckets[code].count += count
        else:
            buckets[code] = LanguageBucket(code=code, count=count)

    combined = list(buckets.values())
    if sort:
        combined.sort(key=lambda bucket: bucket.count, reverse=True)
    return combined
