"""
Column type inference.

Rules are checked in order and the first match wins:
numeric > boolean > datetime > categorical/text. A column of "0"/"1"
strings is therefore numeric, never boolean.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_MISSING_TOKENS, ProfilerConfig

ColumnType = Literal["numeric", "boolean", "datetime", "categorical", "text"]
COLUMN_TYPES: Tuple[ColumnType, ...] = ("numeric", "categorical", "datetime", "text", "boolean")

NUMBER_PATTERN = r"[+-]?(?:\d+\.?\d*|\d*\.?\d+)(?:[eE][+-]?\d+)?"
VALIDATED_NUMBER_RE = re.compile(rf"^{NUMBER_PATTERN}$")
DATE_TOKEN_RE = re.compile(r"\d")
BOOLEAN_TOKENS = frozenset({"true", "false"})


def is_missing(value: Optional[str], tokens: Iterable[str] = DEFAULT_MISSING_TOKENS) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in tokens


def parse_number(value: Optional[str]) -> Optional[float]:
    """Strict finite-number parse: no thousands separators, no inf/nan literals."""
    if value is None:
        return None
    text = str(value).strip()
    if not VALIDATED_NUMBER_RE.match(text):
        return None
    number = float(text)
    if not np.isfinite(number):
        return None
    return number


def to_numeric_array(values: Sequence[str]) -> np.ndarray:
    """Vectorized parse_number: float64 array with NaN where the cell is not a finite number."""
    if len(values) == 0:
        return np.empty(0, dtype=np.float64)
    stripped = pd.Series(values, dtype=object).astype(str).str.strip()
    mask = stripped.str.fullmatch(NUMBER_PATTERN)
    arr = stripped.where(mask, None).astype("float64").to_numpy(copy=True)
    arr[~np.isfinite(arr)] = np.nan
    return arr


def to_datetime_array(values: Sequence[str]) -> pd.Series:
    """Parses calendar dates; values without any digit are never dates."""
    if len(values) == 0:
        return pd.Series([], dtype="datetime64[ns, UTC]")
    stripped = pd.Series(values, dtype=object).astype(str).str.strip()
    has_digit = stripped.str.contains(DATE_TOKEN_RE.pattern, regex=True)
    return pd.to_datetime(stripped.where(has_digit, None), errors="coerce", format="mixed", utc=True)


@dataclass(frozen=True)
class TypeBreakdown:
    numeric: int
    string: int
    boolean: int
    null: int
    total: int

    @property
    def has_mixed_types(self) -> bool:
        return sum(1 for count in (self.numeric, self.string, self.boolean) if count > 0) > 1

    @property
    def inconsistency_ratio(self) -> float:
        non_null = self.total - self.null
        if non_null == 0 or not self.has_mixed_types:
            return 0.0
        return (non_null - max(self.numeric, self.string, self.boolean)) / non_null

    def to_dict(self) -> Dict[str, object]:
        return {
            "numeric": self.numeric,
            "string": self.string,
            "boolean": self.boolean,
            "null": self.null,
            "total": self.total,
            "has_mixed_types": self.has_mixed_types,
            "inconsistency_ratio": self.inconsistency_ratio,
        }


class ColumnValues:
    """Raw cells of one column with the parsed views computed on first use."""

    def __init__(self, values: Sequence[str], missing_tokens: Iterable[str] = DEFAULT_MISSING_TOKENS):
        self.values: List[str] = list(values)
        self.missing_tokens = frozenset(missing_tokens)

    @cached_property
    def missing_mask(self) -> np.ndarray:
        return np.array([is_missing(v, self.missing_tokens) for v in self.values], dtype=bool)

    @cached_property
    def non_null(self) -> List[str]:
        return [v for v, miss in zip(self.values, self.missing_mask) if not miss]

    @property
    def row_count(self) -> int:
        return len(self.values)

    @property
    def missing_count(self) -> int:
        return int(self.missing_mask.sum())

    @property
    def non_null_count(self) -> int:
        return len(self.non_null)

    @cached_property
    def numeric(self) -> np.ndarray:
        """Finite numbers among the non-null values, in column order."""
        arr = to_numeric_array(self.non_null)
        return arr[~np.isnan(arr)]

    @cached_property
    def boolean_count(self) -> int:
        return sum(1 for v in self.non_null if v.strip() in BOOLEAN_TOKENS)

    @cached_property
    def dates(self) -> pd.Series:
        return to_datetime_array(self.non_null).dropna()

    @cached_property
    def unique_non_null(self) -> int:
        return len(set(self.non_null))


def infer_column_type(
    column: ColumnValues | Sequence[str],
    config: Optional[ProfilerConfig] = None,
) -> ColumnType:
    cfg = config or ProfilerConfig()
    if not isinstance(column, ColumnValues):
        column = ColumnValues(column, cfg.missing_tokens)

    total = column.non_null_count
    if total == 0:
        return "text"

    threshold = cfg.type_confidence_threshold
    if column.numeric.size / total > threshold:
        return "numeric"
    if column.boolean_count / total > threshold:
        return "boolean"
    if len(column.dates) / total > threshold:
        return "datetime"

    return "categorical" if column.unique_non_null / total < cfg.categorical_unique_ratio else "text"


def type_breakdown(column: ColumnValues | Sequence[str]) -> TypeBreakdown:
    if not isinstance(column, ColumnValues):
        column = ColumnValues(column)

    numeric = string = boolean = 0
    for value in column.non_null:
        if value.strip().lower() in BOOLEAN_TOKENS:
            boolean += 1
        elif parse_number(value) is not None:
            numeric += 1
        else:
            string += 1

    return TypeBreakdown(
        numeric=numeric,
        string=string,
        boolean=boolean,
        null=column.missing_count,
        total=column.row_count,
    )
