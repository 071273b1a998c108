"""Test per datalens/column_profiler.py - statistiche per colonna."""
from __future__ import annotations

import numpy as np
import pytest

from datalens.column_profiler import (
    BooleanColumnProfile,
    CategoricalColumnProfile,
    DatetimeColumnProfile,
    NumericColumnProfile,
    TextColumnProfile,
    count_outliers,
    histogram,
    profile_column,
)


class TestNumericProfile:
    def test_basic_statistics(self):
        p = profile_column("x", ["5", "3", "7", "2", "9"])
        assert isinstance(p, NumericColumnProfile)
        assert p.inferred_type == "numeric"
        assert p.min == 2.0
        assert p.max == 9.0
        assert p.mean == pytest.approx(5.2)
        assert p.median == 5.0
        assert p.std == pytest.approx(np.std([5, 3, 7, 2, 9]))
        assert p.outlier_count == 0
        assert not p.low_confidence

    def test_single_outlier(self):
        p = profile_column("x", ["1", "2", "3", "4", "1000"])
        assert p.outlier_count == 1

    def test_ordering_invariants(self):
        values = ["12", "-4", "3.5", "100", "7", "7", "0.25", "55"]
        p = profile_column("x", values)
        assert p.min <= p.median <= p.max
        assert p.min <= p.mean <= p.max

    def test_median_lower_middle_for_even_count(self):
        """Mediana = elemento centrale inferiore dell'array ordinato, senza interpolazione."""
        p = profile_column("x", ["4", "1", "3", "2"])
        assert p.median == 2.0

    def test_non_numeric_cells_excluded_from_stats(self):
        values = [str(i) for i in range(1, 10)] + ["oops"]
        p = profile_column("x", values)
        assert isinstance(p, NumericColumnProfile)
        assert p.max == 9.0

    def test_forced_numeric_without_numbers(self):
        p = profile_column("x", ["a", "b"], column_type="numeric")
        assert isinstance(p, NumericColumnProfile)
        assert p.min is None and p.mean is None and p.outlier_count is None
        assert not p.has_statistics

    def test_constant_column(self):
        p = profile_column("x", ["4", "4", "4", "4"])
        assert p.std == 0.0
        assert p.skewness == 0.0
        assert p.outlier_count == 0
        assert len(p.distribution) == 5
        assert p.distribution[0].count == 4

    def test_skewness(self):
        p = profile_column("x", ["1", "1", "1", "1", "1", "2", "2", "3", "50"])
        assert p.skewness > 1.0
        assert p.is_skewed

    def test_to_dict(self):
        data = profile_column("x", ["1", "2", "3"]).to_dict()
        assert data["type"] == "numeric"
        assert data["outliers"] == 0
        assert len(data["distribution"]) == 5


class TestHistogram:
    def test_five_buckets_cover_all_values(self):
        arr = np.sort(np.array([0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 10.0]))
        buckets = histogram(arr, 5)
        assert len(buckets) == 5
        assert sum(b.count for b in buckets) == arr.size

    def test_max_in_last_bucket(self):
        buckets = histogram(np.array([0.0, 10.0]), 5)
        assert buckets[0].count == 1
        assert buckets[-1].count == 1
        assert buckets[-1].upper == 10.0

    def test_edges_and_labels(self):
        buckets = histogram(np.array([0.0, 2.0, 4.0, 6.0, 8.0, 10.0]), 5)
        assert [b.lower for b in buckets] == pytest.approx([0.0, 2.0, 4.0, 6.0, 8.0])
        assert buckets[1].label == "2.00"
        # un valore sul bordo va nel bucket superiore
        assert [b.count for b in buckets] == [1, 1, 1, 1, 2]

    def test_zero_range_uses_unit_width(self):
        buckets = histogram(np.array([3.0, 3.0]), 5)
        assert buckets[0].lower == 3.0
        assert buckets[0].upper == 4.0
        assert buckets[0].count == 2


class TestOutliers:
    def test_truncated_quartiles(self):
        arr = np.sort(np.array([1.0, 2.0, 3.0, 4.0, 1000.0]))
        assert count_outliers(arr) == 1

    def test_empty(self):
        assert count_outliers(np.array([])) == 0


class TestOtherProfiles:
    def test_categorical(self):
        p = profile_column("c", ["b", "a", "b", "b", "a"] * 4)
        assert isinstance(p, CategoricalColumnProfile)
        assert dict(p.distribution) == {"b": 12, "a": 8}
        assert list(p.distribution) == ["b", "a"]
        assert p.mode == "b"

    def test_mode_tie_keeps_first_seen(self):
        p = profile_column("c", ["y", "x"] * 10)
        assert p.mode == "y"

    def test_boolean(self):
        p = profile_column("b", ["true", "false", "true"])
        assert isinstance(p, BooleanColumnProfile)
        assert p.distribution["true"] == 2
        assert p.mode == "true"

    def test_datetime(self):
        p = profile_column("d", ["2024-03-01", "2024-01-01", "2024-02-01", "2024-04-01", "2024-05-01"])
        assert isinstance(p, DatetimeColumnProfile)
        assert p.earliest.startswith("2024-01-01")
        assert p.latest.startswith("2024-05-01")

    def test_text(self):
        p = profile_column("t", ["alpha", "beta", "gamma"])
        assert isinstance(p, TextColumnProfile)
        assert "distribution" not in p.to_dict()

    def test_profiles_are_immutable(self):
        p = profile_column("c", ["a", "b"] * 10)
        with pytest.raises(TypeError):
            p.distribution["a"] = 0  # type: ignore[index]


class TestCommonFields:
    def test_missing_counts(self):
        p = profile_column("x", ["1", "", "NA", "4", "5"])
        assert p.missing_count == 2
        assert p.non_null_count == 3
        assert p.missing_count + p.non_null_count == p.row_count
        assert p.missing_percent == pytest.approx(40.0)

    def test_unique_count_includes_missing_once(self):
        p = profile_column("x", ["1", "1", "2", "", "NA"])
        assert p.unique_value_count == 3

    def test_idempotent(self):
        values = ["3", "1", "", "8", "2", "2"]
        assert profile_column("x", values) == profile_column("x", values)
