"""
Row-level reconciliation between two versions of a table.

Rows are matched by position (``row_<i>``) unless a key column is given
that exists in both tables with unique values. Cells are trimmed before
comparison; two cells that both parse as finite numbers only count as
changed when they differ by at least the numeric tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional, Sequence, Tuple

from .inference import parse_number
from .logger import LogManager

log = LogManager("diff").get_logger()

RowStatus = Literal["added", "removed", "modified", "unchanged"]
RowIdentity = Literal["positional", "column"]

STATUS_ORDER: Dict[str, int] = {"modified": 0, "added": 1, "removed": 2, "unchanged": 3}


@dataclass(frozen=True)
class DiffRow:
    id: str
    status: RowStatus
    base_row: Optional[Tuple[str, ...]]
    compare_row: Optional[Tuple[str, ...]]
    changed_columns: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "base_row": list(self.base_row) if self.base_row is not None else None,
            "compare_row": list(self.compare_row) if self.compare_row is not None else None,
            "changed_columns": list(self.changed_columns),
        }


@dataclass(frozen=True, slots=True)
class RowDiffStats:
    added: int = 0
    removed: int = 0
    modified: int = 0
    unchanged: int = 0

    @classmethod
    def from_counts(cls, counts: Dict[str, int]) -> "RowDiffStats":
        return cls(**{status: counts.get(status, 0) for status in STATUS_ORDER})

    @property
    def total(self) -> int:
        return self.added + self.removed + self.modified + self.unchanged

    @property
    def changed(self) -> int:
        return self.added + self.removed + self.modified

    def to_dict(self) -> Dict[str, int]:
        return {
            "added": self.added,
            "removed": self.removed,
            "modified": self.modified,
            "unchanged": self.unchanged,
        }


@dataclass(frozen=True)
class DiffPage:
    rows: Tuple[DiffRow, ...]
    processed: int
    total: int
    stats: RowDiffStats

    @property
    def is_last(self) -> bool:
        return self.processed >= self.total


@dataclass
class RowAlignment:
    keys: List[str]
    base_rows: Dict[str, Tuple[str, ...]]
    compare_rows: Dict[str, Tuple[str, ...]]
    columns: Tuple[str, ...]
    base_positions: Tuple[int, ...]
    compare_positions: Tuple[Optional[int], ...]
    identity: RowIdentity = "positional"
    conditions: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.keys)

    def common_keys(self) -> List[str]:
        return [k for k in self.keys if k in self.base_rows and k in self.compare_rows]


def values_differ(base: Optional[str], compare: Optional[str], tolerance: float = 1.0) -> bool:
    b = base.strip() if isinstance(base, str) else base
    c = compare.strip() if isinstance(compare, str) else compare
    if b == c:
        return False

    b_num = parse_number(b)
    c_num = parse_number(c)
    if b_num is not None and c_num is not None:
        return abs(b_num - c_num) >= tolerance
    return True


def _key_index(rows: Sequence[Sequence[str]], position: int) -> Optional[Dict[str, Tuple[str, ...]]]:
    index: Dict[str, Tuple[str, ...]] = {}
    for row in rows:
        key = row[position].strip()
        if key in index:
            return None
        index[key] = tuple(row)
    return index


def align_rows(
    base_columns: Sequence[str],
    base_rows: Sequence[Sequence[str]],
    compare_columns: Sequence[str],
    compare_rows: Sequence[Sequence[str]],
    id_column: Optional[str] = None,
) -> RowAlignment:
    """
    Matches rows of the two tables.

    Column names are trimmed; the compared columns are the base ones, looked
    up by name in the compare table (first occurrence wins).
    """
    base_names = [c.strip() for c in base_columns]
    compare_names = [c.strip() for c in compare_columns]
    compare_lookup: Dict[str, int] = {}
    for pos, name in enumerate(compare_names):
        compare_lookup.setdefault(name, pos)

    conditions: List[str] = []
    identity: RowIdentity = "positional"
    base_map: Optional[Dict[str, Tuple[str, ...]]] = None
    compare_map: Optional[Dict[str, Tuple[str, ...]]] = None

    if id_column is not None:
        key = id_column.strip()
        if key in base_names and key in compare_lookup:
            base_map = _key_index(base_rows, base_names.index(key))
            compare_map = _key_index(compare_rows, compare_lookup[key])
        if base_map is not None and compare_map is not None:
            identity = "column"
        else:
            log.warning("Colonna chiave '%s' assente o non univoca, uso l'identita' posizionale", key)
            conditions.append("id_column_unusable")

    if identity == "positional":
        base_map = {f"row_{i}": tuple(row) for i, row in enumerate(base_rows)}
        compare_map = {f"row_{i}": tuple(row) for i, row in enumerate(compare_rows)}
    keys = list(base_map)
    keys.extend(k for k in compare_map if k not in base_map)

    return RowAlignment(
        keys=keys,
        base_rows=base_map,
        compare_rows=compare_map,
        columns=tuple(base_names),
        base_positions=tuple(range(len(base_names))),
        compare_positions=tuple(compare_lookup.get(name) for name in base_names),
        identity=identity,
        conditions=conditions,
    )


def changed_columns(
    alignment: RowAlignment,
    base_row: Sequence[str],
    compare_row: Sequence[str],
    tolerance: float = 1.0,
) -> Tuple[str, ...]:
    changed = []
    for name, b_pos, c_pos in zip(alignment.columns, alignment.base_positions, alignment.compare_positions):
        compare_value = compare_row[c_pos] if c_pos is not None else None
        if values_differ(base_row[b_pos], compare_value, tolerance):
            changed.append(name)
    return tuple(changed)


def diff_row(alignment: RowAlignment, key: str, tolerance: float = 1.0) -> DiffRow:
    base_row = alignment.base_rows.get(key)
    compare_row = alignment.compare_rows.get(key)

    if base_row is None:
        return DiffRow(id=key, status="added", base_row=None, compare_row=compare_row)
    if compare_row is None:
        return DiffRow(id=key, status="removed", base_row=base_row, compare_row=None)

    changed = changed_columns(alignment, base_row, compare_row, tolerance)
    return DiffRow(
        id=key,
        status="modified" if changed else "unchanged",
        base_row=base_row,
        compare_row=compare_row,
        changed_columns=changed,
    )


def iter_diff_pages(
    alignment: RowAlignment,
    page_size: int = 1000,
    tolerance: float = 1.0,
) -> Iterator[DiffPage]:
    """
    Diffs ``page_size`` rows per step. Nothing happens until the consumer
    asks for the next page. Always yields at least one page.
    """
    if page_size <= 0:
        raise ValueError("page_size deve essere positivo.")

    counts: Dict[str, int] = dict.fromkeys(STATUS_ORDER, 0)
    total = alignment.total
    start = 0
    while True:
        page: List[DiffRow] = []
        for key in alignment.keys[start : start + page_size]:
            row = diff_row(alignment, key, tolerance)
            counts[row.status] += 1
            page.append(row)
        start += page_size
        processed = min(start, total)
        yield DiffPage(rows=tuple(page), processed=processed, total=total, stats=RowDiffStats.from_counts(counts))
        if processed >= total:
            return


def sort_diff_rows(rows: Sequence[DiffRow]) -> List[DiffRow]:
    """Display order: modified, added, removed, unchanged; then id (string order)."""
    return sorted(rows, key=lambda r: (STATUS_ORDER[r.status], r.id))


def diff_rows(
    base_columns: Sequence[str],
    base_rows: Sequence[Sequence[str]],
    compare_columns: Sequence[str],
    compare_rows: Sequence[Sequence[str]],
    id_column: Optional[str] = None,
    tolerance: float = 1.0,
) -> Tuple[List[DiffRow], RowDiffStats]:
    """Runs every page at once and returns the sorted rows with their counts."""
    alignment = align_rows(base_columns, base_rows, compare_columns, compare_rows, id_column)
    rows: List[DiffRow] = []
    stats = RowDiffStats()
    for page in iter_diff_pages(alignment, tolerance=tolerance):
        rows.extend(page.rows)
        stats = page.stats
    return sort_diff_rows(rows), stats
