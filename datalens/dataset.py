from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .column_profiler import ColumnProfile, NumericColumnProfile, profile_column
from .config import ProfilerConfig
from .correlation import CorrelationBuilder, CorrelationMatrix
from .inference import COLUMN_TYPES, ColumnType, ColumnValues
from .logger import LogManager
from .parser import RawTable, parse_bytes, parse_text

log = LogManager("dataset").get_logger()


@dataclass(frozen=True)
class DatasetProfile:
    """
    Immutable summary of one ingested file or processed version.

    ``preview_rows`` is only the first rows of the table; every statistic is
    computed over all ``row_count`` rows.
    """

    filename: str
    columns: Tuple[ColumnProfile, ...]
    row_count: int
    preview_rows: Tuple[Tuple[str, ...], ...]
    column_names: Tuple[str, ...]
    correlation: CorrelationMatrix
    total_missing: int
    duplicate_row_count: int
    type_counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    duplicate_column_count: int = 0
    skewed_columns: Tuple[str, ...] = ()
    delimiter: str = ","
    dropped_rows: int = 0

    @property
    def numeric_columns(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns if c.inferred_type == "numeric")

    def column(self, name: str) -> Optional[ColumnProfile]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def missing_rate(self) -> float:
        cells = self.row_count * len(self.columns)
        return self.total_missing / cells if cells else 0.0

    @property
    def duplicate_rate(self) -> float:
        return self.duplicate_row_count / self.row_count if self.row_count else 0.0

    def column_metadata(self) -> List[Dict[str, str]]:
        """Column list a preprocessing configuration is built from."""
        return [
            {
                "name": col.name,
                "type": col.inferred_type,
                "measurement": "QUANTITATIVE" if col.inferred_type == "numeric" else "QUALITATIVE",
            }
            for col in self.columns
        ]

    def to_dict(self, include_preview: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "filename": self.filename,
            "rows": self.row_count,
            "column_names": list(self.column_names),
            "columns": [col.to_dict() for col in self.columns],
            "correlation": self.correlation.to_dict(),
            "missing_values_count": self.total_missing,
            "duplicate_rows_count": self.duplicate_row_count,
            "duplicate_columns_count": self.duplicate_column_count,
            "data_types": dict(self.type_counts),
            "skewed_columns": list(self.skewed_columns),
            "delimiter": self.delimiter,
            "dropped_rows": self.dropped_rows,
        }
        if include_preview:
            data["preview_rows"] = [list(row) for row in self.preview_rows]
        return data


@dataclass(slots=True)
class ProfileProgress:
    stage: str
    completed: int
    total: int

    @property
    def percent(self) -> float:
        return 100.0 * self.completed / self.total if self.total else 100.0


def count_duplicate_rows(rows: Sequence[Sequence[str]]) -> int:
    if not rows:
        return 0
    frame = pd.DataFrame.from_records(list(rows))
    return int(frame.duplicated().sum())


def count_duplicate_columns(column_names: Sequence[str]) -> int:
    trimmed = [name.strip() for name in column_names]
    return len(trimmed) - len(set(trimmed))


class ProfileBuilder:
    """
    Builds a DatasetProfile in small steps.

    ``steps()`` yields after every column batch, after duplicate detection
    and after every correlation row, so a host can interleave other work.
    ``build()`` runs all the steps at once.
    """

    def __init__(
        self,
        table: RawTable,
        filename: str = "",
        config: Optional[ProfilerConfig] = None,
        column_types: Optional[Mapping[str, ColumnType]] = None,
    ) -> None:
        self.table = table
        self.filename = filename
        self.config = config or ProfilerConfig()
        self.column_types = dict(column_types or {})
        self.profile: Optional[DatasetProfile] = None

    def steps(self) -> Iterator[ProfileProgress]:
        table = self.table
        cfg = self.config
        n_cols = len(table.columns)
        batch = max(1, cfg.column_batch_size)

        profiles: List[ColumnProfile] = []
        for start in range(0, n_cols, batch):
            for idx in range(start, min(start + batch, n_cols)):
                name = table.columns[idx]
                values = ColumnValues(table.column_values(idx), cfg.missing_tokens)
                profiles.append(profile_column(name, values, cfg, self.column_types.get(name)))
            yield ProfileProgress("columns", len(profiles), n_cols)

        duplicates = count_duplicate_rows(table.rows)
        yield ProfileProgress("duplicates", 1, 1)

        numeric_indices = [i for i, p in enumerate(profiles) if isinstance(p, NumericColumnProfile)]
        builder = CorrelationBuilder(table.rows, table.columns, numeric_indices, cfg)
        for i in builder.iter_rows():
            yield ProfileProgress("correlation", i + 1, builder.total_rows)
        correlation = builder.result()

        type_counts = {t: 0 for t in COLUMN_TYPES}
        for p in profiles:
            type_counts[p.inferred_type] += 1

        skewed = tuple(
            p.name for p in profiles if isinstance(p, NumericColumnProfile) and p.is_skewed
        )

        self.profile = DatasetProfile(
            filename=self.filename,
            columns=tuple(profiles),
            row_count=table.row_count,
            preview_rows=tuple(table.rows[: cfg.preview_rows]),
            column_names=tuple(table.columns),
            correlation=correlation,
            total_missing=sum(p.missing_count for p in profiles),
            duplicate_row_count=duplicates,
            type_counts=MappingProxyType(type_counts),
            duplicate_column_count=count_duplicate_columns(table.columns),
            skewed_columns=skewed,
            delimiter=table.delimiter,
            dropped_rows=table.dropped_rows,
        )
        log.info(
            "Profilo creato: %s (righe=%d, colonne=%d, numeriche=%d, duplicati=%d)",
            self.filename or "<memory>",
            table.row_count,
            n_cols,
            len(numeric_indices),
            duplicates,
        )
        yield ProfileProgress("done", 1, 1)

    def result(self) -> DatasetProfile:
        """Il profilo prodotto; RuntimeError se steps() non e' arrivato alla fine."""
        if self.profile is None:
            raise RuntimeError("Profilo non prodotto: steps() interrotto prima della fine")
        return self.profile

    def build(self) -> DatasetProfile:
        for _ in self.steps():
            pass
        return self.result()


def profile_table(
    table: RawTable,
    filename: str = "",
    config: Optional[ProfilerConfig] = None,
    column_types: Optional[Mapping[str, ColumnType]] = None,
) -> DatasetProfile:
    return ProfileBuilder(table, filename, config, column_types).build()


def profile_text(
    text: str,
    filename: str = "",
    config: Optional[ProfilerConfig] = None,
    delimiter: Optional[str] = None,
) -> Tuple[DatasetProfile, RawTable]:
    """Parses and profiles text; the table is returned too since diffs need every row."""
    table = parse_text(text, delimiter)
    return profile_table(table, filename, config), table


def profile_bytes(
    raw: bytes,
    filename: str = "",
    config: Optional[ProfilerConfig] = None,
    delimiter: Optional[str] = None,
) -> Tuple[DatasetProfile, RawTable]:
    table = parse_bytes(raw, delimiter)
    return profile_table(table, filename, config), table
