"""Test per datalens/correlation.py - matrice di Pearson."""
from __future__ import annotations

import numpy as np
import pytest

from datalens.config import ProfilerConfig
from datalens.correlation import (
    CorrelationBuilder,
    CorrelationMatrix,
    compute_correlation,
    describe_strength,
    pearson,
    round_half_up,
)


def _rows(*columns):
    return [tuple(str(v) for v in row) for row in zip(*columns)]


class TestPearson:
    def test_perfect_positive(self):
        x = np.arange(10, dtype=float)
        assert pearson(x, x * 2 + 1) == (1.0, False)

    def test_perfect_negative(self):
        x = np.arange(10, dtype=float)
        assert pearson(x, -x) == (-1.0, False)

    def test_too_few_pairs(self):
        x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        assert pearson(x, x) == (0.0, False)

    def test_pairwise_complete(self):
        """Le righe con un NaN da una parte sono escluse solo per quella coppia."""
        x = np.array([1, 2, 3, 4, 5, 6, np.nan, 8], dtype=float)
        y = np.array([2, 4, 6, 8, 10, 12, 14, np.nan], dtype=float)
        assert pearson(x, y) == (1.0, False)

    def test_zero_variance_is_low_confidence(self):
        x = np.arange(8, dtype=float)
        y = np.full(8, 3.0)
        assert pearson(x, y) == (0.0, True)

    def test_rounded_to_two_decimals(self):
        rng = np.random.default_rng(0)
        x = rng.normal(size=50)
        y = x + rng.normal(size=50)
        r, _ = pearson(x, y)
        assert r == round(r, 2)
        assert -1.0 <= r <= 1.0


def test_round_half_up():
    assert round_half_up(0.125) == 0.13
    assert round_half_up(-0.125) == -0.12
    assert round_half_up(0.444) == 0.44


@pytest.mark.parametrize(
    "value,label",
    [(0.9, "Strong positive"), (-0.55, "Moderate negative"), (0.3, "Weak positive"), (0.1, "Very weak"), (None, "Unknown")],
)
def test_describe_strength(value, label):
    assert describe_strength(value) == label


class TestCorrelationMatrix:
    def test_properties(self):
        a = list(range(20))
        b = [v * 3 for v in a]
        c = [(v * 7) % 11 for v in a]
        rows = _rows(a, b, c, ["x"] * 20)
        m = compute_correlation(rows, ["a", "b", "c", "label"], [0, 1, 2])

        assert m.labels == ("a", "b", "c")
        size = len(m.labels)
        for i in range(size):
            assert m.matrix[i][i] == 1.0
            for j in range(size):
                assert m.matrix[i][j] == m.matrix[j][i]
                assert -1.0 <= m.matrix[i][j] <= 1.0
        assert m.value("a", "b") == 1.0

    def test_positions_keep_repeated_labels(self):
        m = CorrelationMatrix(labels=("a", "a", "b"), matrix=((1.0,) * 3,) * 3)
        assert m.positions() == {("a", 0): 0, ("a", 1): 1, ("b", 0): 2}

    def test_no_numeric_columns(self):
        m = compute_correlation(_rows(["x", "y"]), ["label"], [])
        assert m.is_empty
        assert m.matrix == ()

    def test_empty_column_diagonal(self):
        rows = _rows(list(range(8)), [""] * 8)
        m = compute_correlation(rows, ["a", "b"], [0, 1])
        assert m.matrix[1][1] == 0.0
        assert m.matrix[0][1] == 0.0
        assert ("b", "b") in m.low_confidence_pairs

    def test_column_cap(self):
        cfg = ProfilerConfig(correlation_max_columns=2)
        rows = _rows(range(10), range(10), range(10))
        m = compute_correlation(rows, ["a", "b", "c"], [0, 1, 2], cfg)
        assert m.labels == ("a", "b")
        assert m.sampling.original_columns == 3
        assert m.sampling.processed_columns == 2
        assert m.sampling.is_sampled

    def test_row_sampling(self):
        cfg = ProfilerConfig(correlation_sample_size=10)
        values = list(range(100))
        m = compute_correlation(_rows(values, values), ["a", "b"], [0, 1], cfg)
        assert m.sampling.original_rows == 100
        assert m.sampling.sampled_rows == 10
        assert m.value("a", "b") == 1.0

    def test_builder_yields_each_row(self):
        rows = _rows(range(10), range(10), range(10))
        builder = CorrelationBuilder(rows, ["a", "b", "c"], [0, 1, 2])
        assert list(builder.iter_rows()) == [0, 1, 2]
        assert builder.result().value("b", "c") == 1.0

    def test_to_dict(self):
        m = compute_correlation(_rows(range(10), range(10)), ["a", "b"], [0, 1])
        data = m.to_dict()
        assert data["labels"] == ["a", "b"]
        assert data["matrix"] == [[1.0, 1.0], [1.0, 1.0]]
        assert data["sampling"]["sampled_rows"] == 10
