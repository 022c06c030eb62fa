"""Tests for stats formatting and language combining."""

import pytest

from allstats.core.formatters import (
    combine_languages,
    first_row,
    format_comparison_stats,
    format_session_stats,
    to_number,
)
from allstats.core.models import ComparisonStat, LanguageBucket, MetricPoint, SessionStat


class TestToNumber:
    """Test numeric coercion of collaborator values."""

    @pytest.mark.parametrize("value,expected", [
        (None, 0),
        (0, 0),
        (42, 42),
        (2.5, 2.5),
        (3.0, 3),
        ("17", 17),
        (" 12 ", 12),
        ("1.5", 1.5),
        ("", 0),
        ("n/a", 0),
        (float("nan"), 0),
        (float("inf"), 0),
        (True, 1),
        (False, 0),
        ([1], 0),
    ])
    def test_coercion(self, value, expected):
        assert to_number(value) == expected

    def test_integral_float_becomes_int(self):
        assert isinstance(to_number(3.0), int)
        assert isinstance(to_number("8"), int)


class TestFirstRow:
    """Test single-record extraction from aggregate results."""

    def test_list_of_rows(self):
        assert first_row([{"pageviews": 1}, {"pageviews": 2}]) == {"pageviews": 1}

    def test_empty_list(self):
        assert first_row([]) == {}

    def test_none(self):
        assert first_row(None) == {}

    def test_mapping_passes_through(self):
        assert first_row({"visits": 3}) == {"visits": 3}


class TestFormatComparisonStats:
    """Test primary/comparison pairing."""

    def test_pairs_values(self):
        stats = format_comparison_stats(
            {"pageviews": 100, "visitors": 40},
            {"pageviews": 80, "visitors": 50},
        )

        assert stats == {
            "pageviews": ComparisonStat(value=100, prev=80),
            "visitors": ComparisonStat(value=40, prev=50),
        }

    def test_no_comparison_defaults_prev_to_zero(self):
        stats = format_comparison_stats({"pageviews": 100, "bounces": 5}, None)

        assert all(stat.prev == 0 for stat in stats.values())
        assert stats["pageviews"].value == 100

    def test_null_primary_value_is_zero(self):
        """Null or non-numeric primary fields become 0."""
        stats = format_comparison_stats(
            {"pageviews": None, "totaltime": "oops"},
            {"pageviews": 3, "totaltime": 9},
        )

        assert stats["pageviews"].value == 0
        assert stats["totaltime"].value == 0
        assert stats["pageviews"].prev == 3

    def test_missing_comparison_field_is_zero(self):
        stats = format_comparison_stats({"visits": 7}, {})
        assert stats["visits"] == ComparisonStat(value=7, prev=0)

    def test_comparison_only_keys_ignored(self):
        """Keys come from the primary row only."""
        stats = format_comparison_stats({"visits": 7}, {"visits": 1, "extra": 99})
        assert set(stats) == {"visits"}

    def test_string_counts_parsed(self):
        stats = format_comparison_stats({"pageviews": "120"}, {"pageviews": "95"})
        assert stats["pageviews"] == ComparisonStat(value=120, prev=95)

    def test_empty_primary(self):
        assert format_comparison_stats({}, {"pageviews": 1}) == {}


class TestFormatSessionStats:
    """Test session stats formatting."""

    def test_wraps_values(self):
        stats = format_session_stats({"visitors": 10, "countries": 3})

        assert stats == {
            "visitors": SessionStat(value=10),
            "countries": SessionStat(value=3),
        }

    def test_coerces_nulls(self):
        stats = format_session_stats({"events": None})
        assert stats["events"].value == 0

    def test_no_prev_field(self):
        stats = format_session_stats({"visits": 2})
        assert stats["visits"].model_dump() == {"value": 2}


class TestCombineLanguages:
    """Test locale folding into base languages."""

    def test_merges_regional_variants(self):
        """en-US, es-MX, en-GB fold into en=13, es=5 in first-seen order."""
        rows = [
            {"x": "en-US", "y": 10},
            {"x": "es-MX", "y": 5},
            {"x": "en-GB", "y": 3},
        ]

        assert combine_languages(rows) == [
            LanguageBucket(code="en", count=13),
            LanguageBucket(code="es", count=5),
        ]

    def test_counts_are_conserved(self):
        rows = [
            {"x": "en-US", "y": 10},
            {"x": "de", "y": 7},
            {"x": "EN-gb", "y": 4},
            {"x": "de-AT", "y": 2},
            {"x": "fr-CA", "y": 1},
        ]

        buckets = combine_languages(rows)

        assert sum(b.count for b in buckets) == sum(r["y"] for r in rows)
        assert len({b.code for b in buckets}) == len(buckets)

    def test_lowercases_codes(self):
        buckets = combine_languages([{"x": "PT-BR", "y": 2}, {"x": "pt", "y": 1}])
        assert buckets == [LanguageBucket(code="pt", count=3)]

    def test_first_seen_order_not_resorted(self):
        """A merged bucket can overtake an earlier one without reordering."""
        rows = [
            {"x": "es", "y": 6},
            {"x": "en-US", "y": 5},
            {"x": "en-GB", "y": 4},
        ]

        buckets = combine_languages(rows)

        assert [b.code for b in buckets] == ["es", "en"]
        assert buckets[1].count == 9

    def test_sort_by_merged_count(self):
        rows = [
            {"x": "es", "y": 6},
            {"x": "en-US", "y": 5},
            {"x": "en-GB", "y": 4},
        ]

        buckets = combine_languages(rows, sort=True)

        assert [b.code for b in buckets] == ["en", "es"]
        assert sum(b.count for b in buckets) == 15

    def test_accepts_metric_points(self):
        rows = [MetricPoint(x="ja-JP", y=3), MetricPoint(x="ja", y=2)]
        assert combine_languages(rows) == [LanguageBucket(code="ja", count=5)]

    def test_missing_locale_kept_in_empty_bucket(self):
        buckets = combine_languages([{"x": None, "y": 2}, {"x": "en", "y": 1}])

        assert buckets[0] == LanguageBucket(code="", count=2)
        assert sum(b.count for b in buckets) == 3

    def test_empty_input(self):
        assert combine_languages([]) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
