from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as sp_stats

from .config import ProfilerConfig
from .inference import ColumnType, ColumnValues, TypeBreakdown, infer_column_type, type_breakdown
from .logger import LogManager

log = LogManager("column_profiler").get_logger()


@dataclass(frozen=True)
class HistogramBucket:
    lower: float
    upper: float
    count: int

    @property
    def label(self) -> str:
        return f"{self.lower:.2f}"

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "lower": self.lower, "upper": self.upper, "count": self.count}


@dataclass(frozen=True)
class ColumnProfile:
    """Fields shared by every column variant."""

    inferred_type: ClassVar[ColumnType]

    name: str
    row_count: int
    unique_value_count: int
    missing_count: int
    missing_percent: float
    breakdown: TypeBreakdown

    @property
    def non_null_count(self) -> int:
        return self.row_count - self.missing_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.inferred_type,
            "row_count": self.row_count,
            "unique_value_count": self.unique_value_count,
            "missing_count": self.missing_count,
            "missing_percent": self.missing_percent,
            "type_breakdown": self.breakdown.to_dict(),
        }


@dataclass(frozen=True)
class NumericColumnProfile(ColumnProfile):
    inferred_type: ClassVar[ColumnType] = "numeric"

    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    std: Optional[float] = None
    distribution: Tuple[HistogramBucket, ...] = ()
    outlier_count: Optional[int] = None
    skewness: Optional[float] = None
    is_skewed: bool = False
    low_confidence: bool = False

    @property
    def has_statistics(self) -> bool:
        return self.min is not None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "min": self.min,
                "max": self.max,
                "mean": self.mean,
                "median": self.median,
                "std": self.std,
                "distribution": [bucket.to_dict() for bucket in self.distribution],
                "outliers": self.outlier_count,
                "skewness": self.skewness,
                "is_skewed": self.is_skewed,
                "low_confidence": self.low_confidence,
            }
        )
        return data


@dataclass(frozen=True)
class _FrequencyProfile(ColumnProfile):
    distribution: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    mode: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["distribution"] = dict(self.distribution)
        data["mode"] = self.mode
        return data


@dataclass(frozen=True)
class CategoricalColumnProfile(_FrequencyProfile):
    inferred_type: ClassVar[ColumnType] = "categorical"


@dataclass(frozen=True)
class BooleanColumnProfile(_FrequencyProfile):
    inferred_type: ClassVar[ColumnType] = "boolean"


@dataclass(frozen=True)
class DatetimeColumnProfile(ColumnProfile):
    inferred_type: ClassVar[ColumnType] = "datetime"

    earliest: Optional[str] = None
    latest: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["earliest"] = self.earliest
        data["latest"] = self.latest
        return data


@dataclass(frozen=True)
class TextColumnProfile(ColumnProfile):
    inferred_type: ClassVar[ColumnType] = "text"


PROFILE_CLASSES: Dict[ColumnType, type] = {
    "numeric": NumericColumnProfile,
    "categorical": CategoricalColumnProfile,
    "boolean": BooleanColumnProfile,
    "datetime": DatetimeColumnProfile,
    "text": TextColumnProfile,
}


# ---------- numeric statistics ----------
def histogram(sorted_values: np.ndarray, buckets: int = 5) -> Tuple[HistogramBucket, ...]:
    """Equal-width buckets over [min, max]; the last bucket includes max, zero range uses width 1."""
    lo = float(sorted_values[0])
    hi = float(sorted_values[-1])
    span = hi - lo
    width = span / buckets if span > 0 else 1.0
    edges = [lo + i * width for i in range(buckets + 1)]

    idx = np.searchsorted(np.asarray(edges[1:buckets]), sorted_values, side="right")
    counts = np.bincount(idx, minlength=buckets)

    result = []
    for i in range(buckets):
        upper = hi if (i == buckets - 1 and span > 0) else edges[i + 1]
        result.append(HistogramBucket(lower=edges[i], upper=upper, count=int(counts[i])))
    return tuple(result)


def count_outliers(sorted_values: np.ndarray, multiplier: float = 1.5) -> int:
    """
    IQR rule with quartiles taken at the truncated positions n//4 and 3n//4
    of the sorted array (no interpolation).
    """
    n = sorted_values.size
    if n == 0:
        return 0
    q1 = sorted_values[n // 4]
    q3 = sorted_values[(3 * n) // 4]
    iqr = q3 - q1
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr
    return int(np.count_nonzero((sorted_values < lower) | (sorted_values > upper)))


def _finite_or_zero(value: float) -> Tuple[float, bool]:
    if np.isfinite(value):
        return float(value), False
    return 0.0, True


def numeric_statistics(values: np.ndarray, config: ProfilerConfig) -> Dict[str, Any]:
    """Statistics of the finite numbers of a column; empty dict when there are none."""
    if values.size == 0:
        return {}

    arr = np.sort(values)
    n = arr.size

    with np.errstate(all="ignore"), warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        mean_raw = float(np.mean(arr))
        std_raw = float(np.std(arr))
        if np.isfinite(std_raw) and std_raw > 0:
            skew_raw = float(sp_stats.skew(arr, bias=True))
        else:
            skew_raw = 0.0

    mean, mean_flag = _finite_or_zero(mean_raw)
    std, std_flag = _finite_or_zero(std_raw)
    skewness, skew_flag = _finite_or_zero(skew_raw)

    return {
        "min": float(arr[0]),
        "max": float(arr[-1]),
        "mean": mean,
        "median": float(arr[(n - 1) // 2]),
        "std": std,
        "distribution": histogram(arr, config.histogram_buckets),
        "outlier_count": count_outliers(arr, config.iqr_multiplier),
        "skewness": skewness,
        "is_skewed": abs(skewness) > config.skew_threshold,
        "low_confidence": mean_flag or std_flag or skew_flag,
    }


# ---------- frequency statistics ----------
def frequency_statistics(non_null: Sequence[str]) -> Dict[str, Any]:
    distribution: Dict[str, int] = {}
    for value in non_null:
        distribution[value] = distribution.get(value, 0) + 1

    mode: Optional[str] = None
    best = 0
    for value, count in distribution.items():
        if count > best:
            best = count
            mode = value

    return {"distribution": MappingProxyType(distribution), "mode": mode}


def datetime_statistics(column: ColumnValues) -> Dict[str, Any]:
    dates = column.dates
    if dates.empty:
        return {}
    return {"earliest": dates.min().isoformat(), "latest": dates.max().isoformat()}


def profile_column(
    name: str,
    values: Sequence[str] | ColumnValues,
    config: Optional[ProfilerConfig] = None,
    column_type: Optional[ColumnType] = None,
) -> ColumnProfile:
    """
    Profiles one column.

    column_type skips inference when the caller already knows the type
    (e.g. types stored with a previous version). Statistical failures never
    propagate: the column is returned with its optional fields unset.
    """
    cfg = config or ProfilerConfig()
    column = values if isinstance(values, ColumnValues) else ColumnValues(values, cfg.missing_tokens)

    inferred = column_type or infer_column_type(column, cfg)
    row_count = column.row_count
    missing = column.missing_count

    base = {
        "name": name,
        "row_count": row_count,
        "unique_value_count": column.unique_non_null + (1 if missing else 0),
        "missing_count": missing,
        "missing_percent": (missing / row_count * 100.0) if row_count else 0.0,
        "breakdown": type_breakdown(column),
    }

    extra: Dict[str, Any] = {}
    try:
        if inferred == "numeric":
            extra = numeric_statistics(column.numeric, cfg)
        elif inferred in ("categorical", "boolean"):
            extra = frequency_statistics(column.non_null)
        elif inferred == "datetime":
            extra = datetime_statistics(column)
    except Exception as exc:
        log.warning("Statistiche non disponibili per la colonna '%s' (%s): %s", name, inferred, exc, exc_info=True)
        extra = {}

    return PROFILE_CLASSES[inferred](**base, **extra)
