"""
Pairwise Pearson correlation over the numeric columns of a table.

Cost is O(columns^2 * rows), so both dimensions are bounded: only the first
``correlation_max_columns`` numeric columns are used and rows are strided
down to ``correlation_sample_size``. Pairs use only the rows where both
cells are finite numbers; fewer than ``correlation_min_pairs`` such rows
leaves the coefficient at 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .config import ProfilerConfig
from .inference import to_numeric_array
from .logger import LogManager
from .sampling import strided_indices

log = LogManager("correlation").get_logger()


@dataclass(frozen=True)
class SamplingInfo:
    original_rows: int
    sampled_rows: int
    original_columns: int
    processed_columns: int

    @property
    def is_sampled(self) -> bool:
        return self.sampled_rows < self.original_rows or self.processed_columns < self.original_columns

    def to_dict(self) -> Dict[str, int]:
        return {
            "original_rows": self.original_rows,
            "sampled_rows": self.sampled_rows,
            "original_columns": self.original_columns,
            "processed_columns": self.processed_columns,
        }


@dataclass(frozen=True)
class CorrelationMatrix:
    labels: Tuple[str, ...] = ()
    matrix: Tuple[Tuple[float, ...], ...] = ()
    low_confidence_pairs: Tuple[Tuple[str, str], ...] = ()
    sampling: SamplingInfo = field(default_factory=lambda: SamplingInfo(0, 0, 0, 0))

    @property
    def is_empty(self) -> bool:
        return not self.labels

    def index(self, label: str) -> int:
        return self.labels.index(label)

    def positions(self) -> Dict[Tuple[str, int], int]:
        """(label, occurrence) -> row index; repeated header names stay distinct."""
        seen: Dict[str, int] = {}
        out: Dict[Tuple[str, int], int] = {}
        for i, label in enumerate(self.labels):
            occurrence = seen.get(label, 0)
            seen[label] = occurrence + 1
            out[(label, occurrence)] = i
        return out

    def value(self, first: str, second: str) -> float:
        return self.matrix[self.index(first)][self.index(second)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "matrix": [list(row) for row in self.matrix],
            "low_confidence_pairs": [list(pair) for pair in self.low_confidence_pairs],
            "sampling": self.sampling.to_dict(),
        }


def round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def pearson(x: np.ndarray, y: np.ndarray, min_pairs: int = 6) -> Tuple[float, bool]:
    """
    Pearson coefficient over pairwise-complete observations.

    Returns (coefficient, low_confidence). Too few pairs gives (0, False);
    zero variance or a non-finite result gives (0, True).
    """
    mask = ~(np.isnan(x) | np.isnan(y))
    if int(mask.sum()) < min_pairs:
        return 0.0, False

    xs = x[mask]
    ys = y[mask]
    with np.errstate(all="ignore"):
        dx = xs - xs.mean()
        dy = ys - ys.mean()
        cov = float(np.sum(dx * dy))
        denom = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))

    if denom == 0.0 or not math.isfinite(denom) or not math.isfinite(cov):
        return 0.0, True

    r = round_half_up(cov / denom)
    return max(-1.0, min(1.0, r)), False


def describe_strength(value: Optional[float]) -> str:
    if value is None:
        return "Unknown"
    magnitude = abs(value)
    direction = "positive" if value > 0 else "negative"
    if magnitude >= 0.7:
        return f"Strong {direction}"
    if magnitude >= 0.5:
        return f"Moderate {direction}"
    if magnitude >= 0.3:
        return f"Weak {direction}"
    return "Very weak"


class CorrelationBuilder:
    """Computes the matrix one row at a time so callers can yield between rows."""

    def __init__(
        self,
        rows: Sequence[Sequence[str]],
        columns: Sequence[str],
        numeric_indices: Sequence[int],
        config: Optional[ProfilerConfig] = None,
    ) -> None:
        self.config = config or ProfilerConfig()
        cfg = self.config

        self.indices = list(numeric_indices)[: cfg.correlation_max_columns]
        self.labels = tuple(columns[i] for i in self.indices)
        if len(self.indices) < len(numeric_indices):
            log.info(
                "Correlazione limitata a %d di %d colonne numeriche",
                len(self.indices),
                len(numeric_indices),
            )

        sample = strided_indices(len(rows), cfg.correlation_sample_size)
        self.sampling = SamplingInfo(
            original_rows=len(rows),
            sampled_rows=sample.sampled_count,
            original_columns=len(numeric_indices),
            processed_columns=len(self.indices),
        )
        picked = [rows[i] for i in sample.indices]
        self._arrays = [to_numeric_array([row[idx] for row in picked]) for idx in self.indices]

        size = len(self.indices)
        self._matrix: List[List[float]] = [[0.0] * size for _ in range(size)]
        self._low_confidence: List[Tuple[str, str]] = []
        self._next_row = 0

    @property
    def total_rows(self) -> int:
        return len(self.indices)

    def iter_rows(self) -> Iterator[int]:
        """Fills row i (diagonal and the pairs j > i), yielding i after each row."""
        min_pairs = self.config.correlation_min_pairs
        size = len(self.indices)
        while self._next_row < size:
            i = self._next_row
            if np.any(~np.isnan(self._arrays[i])):
                self._matrix[i][i] = 1.0
            else:
                self._low_confidence.append((self.labels[i], self.labels[i]))
            for j in range(i + 1, size):
                value, low = pearson(self._arrays[i], self._arrays[j], min_pairs)
                self._matrix[i][j] = value
                self._matrix[j][i] = value
                if low:
                    self._low_confidence.append((self.labels[i], self.labels[j]))
            self._next_row += 1
            yield i

    def result(self) -> CorrelationMatrix:
        for _ in self.iter_rows():
            pass
        return CorrelationMatrix(
            labels=self.labels,
            matrix=tuple(tuple(row) for row in self._matrix),
            low_confidence_pairs=tuple(self._low_confidence),
            sampling=self.sampling,
        )


def compute_correlation(
    rows: Sequence[Sequence[str]],
    columns: Sequence[str],
    numeric_indices: Sequence[int],
    config: Optional[ProfilerConfig] = None,
) -> CorrelationMatrix:
    return CorrelationBuilder(rows, columns, numeric_indices, config).result()
