"""
Statistical deltas between two profiles of the same dataset.

Provides the column-level and dataset-level side of a version diff:
- per-column missing/outlier deltas, numeric statistic deltas
- categorical distribution similarity and significant category shifts
- correlation pairs whose coefficient moved
- share of aligned cells that changed, on a strided sample for large tables
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .column_profiler import CategoricalColumnProfile, ColumnProfile, NumericColumnProfile
from .config import DiffConfig
from .correlation import CorrelationMatrix
from .dataset import DatasetProfile
from .diff import RowAlignment, values_differ
from .logger import LogManager
from .sampling import strided_indices

log = LogManager("comparison").get_logger()

NUMERIC_FIELDS: Tuple[str, ...] = ("mean", "median", "std", "min", "max")


@dataclass(frozen=True)
class CategoryShift:
    """Percentage-point change of one category between versions"""
    category: str
    base_percent: float
    compare_percent: float
    delta: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "base_percent": self.base_percent,
            "compare_percent": self.compare_percent,
            "delta": self.delta,
        }


@dataclass(frozen=True)
class NumericDeltas:
    """compare - base for each statistic; None when either side lacks it"""
    mean: Optional[float] = None
    median: Optional[float] = None
    std: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    def is_zero(self) -> bool:
        return all(getattr(self, name) in (None, 0.0) for name in NUMERIC_FIELDS)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in NUMERIC_FIELDS}


@dataclass(frozen=True)
class ColumnComparison:
    name: str
    type: str  # inferred type in the base version
    missing_delta: float  # percentage points
    outlier_delta: int
    distribution_similarity: Optional[float] = None  # categorical on both sides only
    numeric_deltas: Optional[NumericDeltas] = None  # numeric on both sides only
    significant_category_shifts: Tuple[CategoryShift, ...] = ()
    type_changed: bool = False
    changed_cell_percent: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "missing_delta": self.missing_delta,
            "outlier_delta": self.outlier_delta,
            "distribution_similarity": self.distribution_similarity,
            "numeric_deltas": self.numeric_deltas.to_dict() if self.numeric_deltas else None,
            "significant_category_shifts": [s.to_dict() for s in self.significant_category_shifts],
            "type_changed": self.type_changed,
            "changed_cell_percent": self.changed_cell_percent,
        }


@dataclass(frozen=True)
class CorrelationChange:
    first: str
    second: str
    base: float
    compare: float
    delta: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first": self.first,
            "second": self.second,
            "base": self.base,
            "compare": self.compare,
            "delta": self.delta,
        }


@dataclass(frozen=True)
class DatasetDelta:
    base_rows: int
    compare_rows: int
    row_difference: int
    row_change_percent: Optional[float]  # None when the base version is empty
    base_missing_rate: float
    compare_missing_rate: float
    base_duplicate_rate: float
    compare_duplicate_rate: float
    added_columns: Tuple[str, ...] = ()
    removed_columns: Tuple[str, ...] = ()
    common_columns: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_rows": self.base_rows,
            "compare_rows": self.compare_rows,
            "row_difference": self.row_difference,
            "row_change_percent": self.row_change_percent,
            "base_missing_rate": self.base_missing_rate,
            "compare_missing_rate": self.compare_missing_rate,
            "base_duplicate_rate": self.base_duplicate_rate,
            "compare_duplicate_rate": self.compare_duplicate_rate,
            "added_columns": list(self.added_columns),
            "removed_columns": list(self.removed_columns),
            "common_columns": list(self.common_columns),
        }


@dataclass
class ProfileComparison:
    """Everything a diff reports beyond the row table"""
    column_comparisons: List[ColumnComparison] = field(default_factory=list)
    dataset_delta: Optional[DatasetDelta] = None
    correlation_changes: List[CorrelationChange] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    sampled: bool = False


def _columns_by_name(profile: DatasetProfile) -> Dict[str, ColumnProfile]:
    by_name: Dict[str, ColumnProfile] = {}
    for col in profile.columns:
        by_name.setdefault(col.name.strip(), col)
    return by_name


def category_shifts(
    base: CategoricalColumnProfile,
    compare: CategoricalColumnProfile,
    threshold: float = 5.0,
    limit: int = 3,
) -> Tuple[float, Tuple[CategoryShift, ...]]:
    """
    Compares two category distributions.

    Each category's percentage is relative to its own profile's row count,
    so missing values dilute the shares.

    Returns:
        (similarity in [0, 1], shifts with |delta| >= threshold, largest first)
    """
    categories = list(base.distribution)
    categories.extend(c for c in compare.distribution if c not in base.distribution)

    total_abs = 0.0
    shifts: List[CategoryShift] = []
    for category in categories:
        base_pct = base.distribution.get(category, 0) / base.row_count * 100.0 if base.row_count else 0.0
        cmp_pct = compare.distribution.get(category, 0) / compare.row_count * 100.0 if compare.row_count else 0.0
        delta = cmp_pct - base_pct
        total_abs += abs(delta)
        if abs(delta) >= threshold:
            shifts.append(CategoryShift(category, base_pct, cmp_pct, delta))

    shifts.sort(key=lambda s: abs(s.delta), reverse=True)
    similarity = max(0.0, 1.0 - total_abs / 100.0)
    return similarity, tuple(shifts[:limit])


def numeric_deltas(base: NumericColumnProfile, compare: NumericColumnProfile) -> NumericDeltas:
    values = {}
    for name in NUMERIC_FIELDS:
        b = getattr(base, name)
        c = getattr(compare, name)
        values[name] = None if b is None or c is None else c - b
    return NumericDeltas(**values)


def compare_column(
    base: ColumnProfile,
    compare: ColumnProfile,
    config: Optional[DiffConfig] = None,
    changed_cell_percent: Optional[float] = None,
) -> ColumnComparison:
    cfg = config or DiffConfig()

    base_outliers = getattr(base, "outlier_count", None) or 0
    compare_outliers = getattr(compare, "outlier_count", None) or 0

    similarity: Optional[float] = None
    shifts: Tuple[CategoryShift, ...] = ()
    if isinstance(base, CategoricalColumnProfile) and isinstance(compare, CategoricalColumnProfile):
        similarity, shifts = category_shifts(
            base, compare, cfg.category_shift_threshold, cfg.max_category_shifts
        )

    deltas: Optional[NumericDeltas] = None
    if isinstance(base, NumericColumnProfile) and isinstance(compare, NumericColumnProfile):
        deltas = numeric_deltas(base, compare)

    return ColumnComparison(
        name=base.name.strip(),
        type=base.inferred_type,
        missing_delta=compare.missing_percent - base.missing_percent,
        outlier_delta=compare_outliers - base_outliers,
        distribution_similarity=similarity,
        numeric_deltas=deltas,
        significant_category_shifts=shifts,
        type_changed=base.inferred_type != compare.inferred_type,
        changed_cell_percent=changed_cell_percent,
    )


def changed_cell_percentages(
    alignment: RowAlignment,
    columns: Sequence[str],
    config: Optional[DiffConfig] = None,
) -> Tuple[Dict[str, float], bool]:
    """
    Share (%) of aligned rows whose cell changed, per column.

    Only rows present in both versions count. Above ``max_stat_samples``
    aligned rows the positions are strided.

    Returns:
        (percent per column, whether the rows were sampled)
    """
    cfg = config or DiffConfig()
    keys = alignment.common_keys()
    sample = strided_indices(len(keys), cfg.max_stat_samples)
    picked = [keys[i] for i in sample.indices]

    positions = {
        name: (b_pos, c_pos)
        for name, b_pos, c_pos in zip(alignment.columns, alignment.base_positions, alignment.compare_positions)
    }

    result: Dict[str, float] = {}
    for name in columns:
        if name not in positions:
            continue
        b_pos, c_pos = positions[name]
        if not picked:
            result[name] = 0.0
            continue
        changed = 0
        for key in picked:
            base_value = alignment.base_rows[key][b_pos]
            compare_value = alignment.compare_rows[key][c_pos] if c_pos is not None else None
            if values_differ(base_value, compare_value, cfg.numeric_tolerance):
                changed += 1
        result[name] = changed / len(picked) * 100.0

    sampled = sample.method == "strided"
    if sampled:
        log.info("Statistiche di variazione per colonna calcolate su campione: %s", sample.summary())
    return result, sampled


def correlation_changes(
    base: CorrelationMatrix,
    compare: CorrelationMatrix,
    config: Optional[DiffConfig] = None,
) -> List[CorrelationChange]:
    """Pairs (labels in both matrices) with |delta| above the threshold, largest first."""
    cfg = config or DiffConfig()
    base_pos = base.positions()
    compare_pos = compare.positions()
    # stesse etichette ripetute: accoppiate per ordine di comparsa
    shared = [key for key in base_pos if key in compare_pos]

    changes: List[CorrelationChange] = []
    for i, first_key in enumerate(shared):
        for second_key in shared[i + 1 :]:
            b = base.matrix[base_pos[first_key]][base_pos[second_key]]
            c = compare.matrix[compare_pos[first_key]][compare_pos[second_key]]
            first, second = first_key[0], second_key[0]
            delta = c - b
            if abs(delta) > cfg.correlation_delta_threshold:
                changes.append(CorrelationChange(first, second, b, c, delta))

    changes.sort(key=lambda ch: abs(ch.delta), reverse=True)
    return changes[: cfg.max_correlation_changes]


def dataset_delta(base: DatasetProfile, compare: DatasetProfile) -> DatasetDelta:
    base_names = list(_columns_by_name(base))
    compare_names = list(_columns_by_name(compare))

    difference = compare.row_count - base.row_count
    return DatasetDelta(
        base_rows=base.row_count,
        compare_rows=compare.row_count,
        row_difference=difference,
        row_change_percent=difference / base.row_count * 100.0 if base.row_count else None,
        base_missing_rate=base.missing_rate,
        compare_missing_rate=compare.missing_rate,
        base_duplicate_rate=base.duplicate_rate,
        compare_duplicate_rate=compare.duplicate_rate,
        added_columns=tuple(n for n in compare_names if n not in base_names),
        removed_columns=tuple(n for n in base_names if n not in compare_names),
        common_columns=tuple(n for n in base_names if n in compare_names),
    )


def compare_profiles(
    base: DatasetProfile,
    compare: DatasetProfile,
    config: Optional[DiffConfig] = None,
    alignment: Optional[RowAlignment] = None,
) -> ProfileComparison:
    """
    Column, dataset and correlation deltas between two profiles.

    Args:
        base: profile of the older version
        compare: profile of the newer version
        config: thresholds; defaults when None
        alignment: matched rows; without it changed_cell_percent stays None

    Returns:
        ProfileComparison. Correlation changes are skipped, with condition
        ``no_numeric_columns``, when either side has no numeric column.
    """
    cfg = config or DiffConfig()
    result = ProfileComparison(dataset_delta=dataset_delta(base, compare))

    base_cols = _columns_by_name(base)
    compare_cols = _columns_by_name(compare)
    common = [name for name in base_cols if name in compare_cols]

    percents: Dict[str, float] = {}
    if alignment is not None:
        percents, result.sampled = changed_cell_percentages(alignment, common, cfg)

    for name in common:
        result.column_comparisons.append(
            compare_column(base_cols[name], compare_cols[name], cfg, percents.get(name))
        )

    if not base.numeric_columns or not compare.numeric_columns:
        result.conditions.append("no_numeric_columns")
    else:
        result.correlation_changes = correlation_changes(base.correlation, compare.correlation, cfg)

    return result
