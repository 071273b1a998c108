from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Literal, Sequence, TypeVar

import numpy as np

T = TypeVar("T")

SampleMethod = Literal["strided", "identity"]


@dataclass(slots=True)
class SampleResult:
    indices: np.ndarray
    method: SampleMethod
    original_count: int
    sampled_count: int

    @property
    def stride(self) -> int:
        if self.sampled_count < 2:
            return 1
        return int(self.indices[1] - self.indices[0])

    @property
    def reduction_ratio(self) -> float:
        if self.sampled_count == 0:
            return np.inf
        return self.original_count / self.sampled_count

    def summary(self) -> str:
        return (
            f"{self.original_count:,} → {self.sampled_count:,} "
            f"({self.reduction_ratio:.1f}x, {self.method})"
        )


def strided_indices(count: int, max_samples: int) -> SampleResult:
    """
    Evenly strided positions with stride ceil(count / max_samples),
    always starting at index 0. Identity when count fits.
    """
    if max_samples <= 0:
        raise ValueError("max_samples deve essere positivo.")

    if count <= max_samples:
        return SampleResult(
            indices=np.arange(count, dtype=int),
            method="identity",
            original_count=count,
            sampled_count=count,
        )

    step = math.ceil(count / max_samples)
    indices = np.arange(0, count, step, dtype=int)[:max_samples]
    return SampleResult(
        indices=indices,
        method="strided",
        original_count=count,
        sampled_count=int(indices.size),
    )


def sample_rows(rows: Sequence[T], max_samples: int) -> List[T]:
    result = strided_indices(len(rows), max_samples)
    if result.method == "identity":
        return list(rows)
    return [rows[i] for i in result.indices]
