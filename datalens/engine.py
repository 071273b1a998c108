"""
Version diff engine.

Compares two processed versions of a dataset. The work is split into
steps (one page of rows each) so a host can drive it between other tasks;
results are memoized per (base id, compare id) in a DiffCache owned by the
caller.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .comparison import ColumnComparison, CorrelationChange, DatasetDelta, compare_profiles
from .config import DiffConfig
from .dataset import DatasetProfile
from .diff import DiffPage, DiffRow, RowAlignment, RowDiffStats, align_rows, iter_diff_pages, sort_diff_rows
from .logger import LogManager

log = LogManager("engine").get_logger()


class DiffState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"


class VersionStatus(str, Enum):
    RAW = "RAW"
    RUNNING = "RUNNING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class VersionRef:
    """Version metadata as stored by the host; read only here."""
    id: str
    status: VersionStatus = VersionStatus.PROCESSED
    parent_id: Optional[str] = None
    file_ref: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionRef":
        return cls(
            id=str(data["id"]),
            status=VersionStatus(data.get("status", VersionStatus.PROCESSED.value)),
            parent_id=data.get("parentId", data.get("parent_id")),
            file_ref=data.get("fileRef", data.get("file_ref")),
        )


@dataclass(frozen=True)
class VersionSnapshot:
    version: VersionRef
    profile: Optional[DatasetProfile]
    rows: Sequence[Sequence[str]] = ()


@dataclass(frozen=True)
class DiffResult:
    """Immutable: the same instance is handed out again on every cache hit."""
    available: bool
    conditions: Tuple[str, ...] = ()
    rows: Tuple[DiffRow, ...] = ()
    row_stats: RowDiffStats = RowDiffStats()
    columns: Tuple[str, ...] = ()
    column_comparisons: Tuple[ColumnComparison, ...] = ()
    dataset_delta: Optional[DatasetDelta] = None
    correlation_changes: Tuple[CorrelationChange, ...] = ()
    sampled: bool = False

    @classmethod
    def empty(cls, *conditions: str, available: bool = False) -> "DiffResult":
        return cls(available=available, conditions=tuple(conditions))

    def has_changes(self) -> bool:
        return self.row_stats.changed > 0

    def get_summary(self) -> str:
        """Single-line summary for logging"""
        if not self.available:
            return f"Diff unavailable ({', '.join(self.conditions)})"
        s = self.row_stats
        return f"Diff: +{s.added} -{s.removed} ~{s.modified} ={s.unchanged}"

    def to_dict(self, include_rows: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "available": self.available,
            "conditions": list(self.conditions),
            "row_stats": self.row_stats.to_dict(),
            "columns": list(self.columns),
            "column_comparisons": [c.to_dict() for c in self.column_comparisons],
            "dataset_delta": self.dataset_delta.to_dict() if self.dataset_delta else None,
            "correlation_changes": [c.to_dict() for c in self.correlation_changes],
            "sampled": self.sampled,
        }
        if include_rows:
            data["rows"] = [r.to_dict() for r in self.rows]
        return data


class DiffCache:
    """LRU of finished diffs keyed by (base_version_id, compare_version_id)."""

    def __init__(self, max_entries: int = 8):
        if max_entries <= 0:
            raise ValueError("max_entries deve essere positivo.")
        self.max_entries = max_entries
        self._items: "OrderedDict[Tuple[str, str], DiffResult]" = OrderedDict()

    def get(self, key: Tuple[str, str]) -> Optional[DiffResult]:
        result = self._items.get(key)
        if result is not None:
            self._items.move_to_end(key)
        return result

    def put(self, key: Tuple[str, str], result: DiffResult) -> None:
        self._items[key] = result
        self._items.move_to_end(key)
        while len(self._items) > self.max_entries:
            evicted, _ = self._items.popitem(last=False)
            log.debug("Cache diff: rimosso %s", evicted)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


class VersionDiffEngine:
    """
    IDLE -> COMPUTING -> READY, back to COMPUTING on every new selection.

    There is no error state: a failure while diffing leaves the engine READY
    with an empty result carrying the ``diff_failed`` condition.
    """

    def __init__(self, config: Optional[DiffConfig] = None, cache: Optional[DiffCache] = None):
        self.config = config or DiffConfig()
        self.cache = cache if cache is not None else DiffCache(self.config.cache_size)
        self.state = DiffState.IDLE
        self.result: Optional[DiffResult] = None
        self._base: Optional[VersionSnapshot] = None
        self._compare: Optional[VersionSnapshot] = None
        self._pages: Optional[Iterator[DiffPage]] = None
        self._alignment: Optional[RowAlignment] = None
        self._rows: List[DiffRow] = []
        self._stats = RowDiffStats()

    @property
    def cache_key(self) -> Optional[Tuple[str, str]]:
        if self._base is None or self._compare is None:
            return None
        return (self._base.version.id, self._compare.version.id)

    def select(self, base: Optional[VersionSnapshot], compare: Optional[VersionSnapshot]) -> DiffState:
        """Sets the two versions to compare; any in-flight diff is discarded."""
        self._base = base
        self._compare = compare
        self._pages = None
        self._alignment = None
        self._rows = []
        self._stats = RowDiffStats()
        self.result = None
        self.state = DiffState.COMPUTING

        if base is None or compare is None or base.profile is None or compare.profile is None:
            log.warning("Diff non disponibile: profilo mancante")
            self._finish(DiffResult.empty("profile_missing"), cache=False)
            return self.state

        key = self.cache_key
        cached = self.cache.get(key)
        if cached is not None:
            log.info("Diff da cache: %s -> %s", *key)
            self._finish(cached, cache=False)
            return self.state

        try:
            self._alignment = align_rows(
                base.profile.column_names,
                base.rows,
                compare.profile.column_names,
                compare.rows,
                self.config.id_column,
            )
            self._pages = iter_diff_pages(
                self._alignment, self.config.page_size, self.config.numeric_tolerance
            )
        except Exception as exc:
            self._fail(exc)
        return self.state

    def step(self) -> Optional[DiffPage]:
        """Processes one page of rows; returns None once the engine is READY."""
        if self.state is not DiffState.COMPUTING or self._pages is None:
            return None
        try:
            page = next(self._pages)
        except StopIteration:
            self._complete()
            return None
        except Exception as exc:
            self._fail(exc)
            return None

        self._rows.extend(page.rows)
        self._stats = page.stats
        if page.is_last:
            self._complete()
        return page

    def pages(self) -> Iterator[DiffPage]:
        while True:
            page = self.step()
            if page is None:
                return
            yield page

    def run(self) -> DiffResult:
        for _ in self.pages():
            pass
        if self.result is None:
            raise RuntimeError("run() richiede una selezione: chiamare prima select()")
        return self.result

    def _complete(self) -> None:
        if self._base is None or self._compare is None or self._alignment is None:
            raise RuntimeError("Nessun diff in corso da completare")
        try:
            comparison = compare_profiles(
                self._base.profile, self._compare.profile, self.config, self._alignment
            )
        except Exception as exc:
            self._fail(exc)
            return

        result = DiffResult(
            available=True,
            conditions=tuple(self._alignment.conditions) + tuple(comparison.conditions),
            rows=tuple(sort_diff_rows(self._rows)),
            row_stats=self._stats,
            columns=self._alignment.columns,
            column_comparisons=tuple(comparison.column_comparisons),
            dataset_delta=comparison.dataset_delta,
            correlation_changes=tuple(comparison.correlation_changes),
            sampled=comparison.sampled,
        )
        log.info("Diff %s -> %s completato: %s", *self.cache_key, result.get_summary())
        self._finish(result, cache=True)

    def _fail(self, exc: Exception) -> None:
        log.error("Diff fallito per %s: %s", self.cache_key, exc, exc_info=True)
        self._finish(DiffResult.empty("diff_failed"), cache=False)

    def _finish(self, result: DiffResult, cache: bool) -> None:
        self._pages = None
        self.result = result
        self.state = DiffState.READY
        if cache and self.cache_key is not None:
            self.cache.put(self.cache_key, result)
