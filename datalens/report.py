from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .dataset import DatasetProfile
from .engine import DiffResult
from .logger import LogManager


log = LogManager("report").get_logger()


@dataclass
class ReportFormats:
    json: bool = True
    md: bool = False
    csv: bool = False

    @classmethod
    def from_token(cls, token: str) -> "ReportFormats":
        t = (token or "json").strip().lower()
        parts = {p for p in t.split("+") if p}
        if not parts or not parts <= {"json", "md", "csv"}:
            # default
            return cls(json=True, md=False, csv=False)
        return cls(json="json" in parts, md="md" in parts, csv="csv" in parts)


def _fmt(value: Any, digits: int = 4) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.{digits}g}"
    return str(value)


def profile_frame(profile: DatasetProfile) -> pd.DataFrame:
    """Una riga per colonna con le statistiche principali."""
    records: List[Dict[str, Any]] = []
    for col in profile.columns:
        records.append(
            {
                "column": col.name,
                "type": col.inferred_type,
                "unique": col.unique_value_count,
                "missing": col.missing_count,
                "missing_%": round(col.missing_percent, 2),
                "min": getattr(col, "min", None),
                "max": getattr(col, "max", None),
                "mean": getattr(col, "mean", None),
                "median": getattr(col, "median", None),
                "std": getattr(col, "std", None),
                "outliers": getattr(col, "outlier_count", None),
                "mode": getattr(col, "mode", None),
            }
        )
    return pd.DataFrame.from_records(records)


def comparison_frame(result: DiffResult) -> pd.DataFrame:
    records = []
    for comp in result.column_comparisons:
        deltas = comp.numeric_deltas.to_dict() if comp.numeric_deltas else {}
        records.append(
            {
                "column": comp.name,
                "type": comp.type,
                "type_changed": comp.type_changed,
                "missing_delta": round(comp.missing_delta, 2),
                "outlier_delta": comp.outlier_delta,
                "mean_delta": deltas.get("mean"),
                "similarity": comp.distribution_similarity,
                "changed_cells_%": comp.changed_cell_percent,
            }
        )
    return pd.DataFrame.from_records(records)


def rows_frame(result: DiffResult) -> pd.DataFrame:
    records = [
        {"id": r.id, "status": r.status, "changed_columns": ";".join(r.changed_columns)}
        for r in result.rows
    ]
    return pd.DataFrame.from_records(records, columns=["id", "status", "changed_columns"])


def to_markdown_table(df: pd.DataFrame) -> str:
    # Markdown senza dipendere da 'tabulate'
    cols = list(df.columns)
    header = "|" + "|".join(str(c) for c in cols) + "|\n"
    align = "|" + "|".join("---" for _ in cols) + "|\n"
    rows = []
    for _, row in df.iterrows():
        rows.append("|" + "|".join("" if pd.isna(v) else _fmt(v) for v in row.tolist()) + "|")
    return header + align + "\n".join(rows) + "\n"


def profile_markdown(profile: DatasetProfile) -> str:
    lines = [
        f"# Profilo: {profile.filename or 'dataset'}",
        "",
        f"- Righe: {profile.row_count}",
        f"- Colonne: {len(profile.columns)}",
        f"- Valori mancanti: {profile.total_missing}",
        f"- Righe duplicate: {profile.duplicate_row_count}",
        f"- Colonne asimmetriche: {', '.join(profile.skewed_columns) or '-'}",
        "",
        "## Colonne",
        "",
        to_markdown_table(profile_frame(profile)),
    ]
    if not profile.correlation.is_empty:
        labels = list(profile.correlation.labels)
        corr = pd.DataFrame(list(profile.correlation.matrix), columns=labels)
        corr.insert(0, "", labels)
        lines += ["## Correlazioni", "", to_markdown_table(corr)]
    return "\n".join(lines)


def diff_markdown(result: DiffResult, title: str = "Confronto versioni") -> str:
    content = f"# {title}\n\nGenerato il {datetime.now():%Y-%m-%d %H:%M:%S}\n\n"
    if not result.available:
        return content + f"Confronto non disponibile: {', '.join(result.conditions)}\n"

    s = result.row_stats
    content += (
        f"- Aggiunte: {s.added}\n- Rimosse: {s.removed}\n"
        f"- Modificate: {s.modified}\n- Invariate: {s.unchanged}\n"
    )
    if result.conditions:
        content += f"- Condizioni: {', '.join(result.conditions)}\n"
    if result.sampled:
        content += "- Statistiche per colonna calcolate su un campione\n"

    delta = result.dataset_delta
    if delta is not None:
        content += f"\n## Dataset\n\n- Righe: {delta.base_rows} -> {delta.compare_rows} ({delta.row_difference:+d})\n"
        if delta.added_columns:
            content += f"- Colonne aggiunte: {', '.join(delta.added_columns)}\n"
        if delta.removed_columns:
            content += f"- Colonne rimosse: {', '.join(delta.removed_columns)}\n"

    if result.column_comparisons:
        content += "\n## Colonne\n\n" + to_markdown_table(comparison_frame(result))

    if result.correlation_changes:
        content += "\n## Correlazioni\n\n"
        for ch in result.correlation_changes:
            content += f"- {ch.first} / {ch.second}: {ch.base:.2f} -> {ch.compare:.2f} ({ch.delta:+.2f})\n"
    return content


class ReportManager:
    """
    Salva profili e confronti in outputs/ (JSON, Markdown, CSV delle righe).
    """

    def __init__(self, outputs_dir: Optional[Union[str, Path]] = None) -> None:
        self.project_root = Path(__file__).resolve().parents[1]
        self.outputs_dir = Path(outputs_dir) if outputs_dir else self.project_root / "outputs"
        self.outputs_dir.mkdir(parents=True, exist_ok=True)

    def _save_json(self, data: Dict[str, Any], path: Path) -> Path:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        log.info("Report JSON salvato: %s", path)
        return path

    def _save_md(self, content: str, path: Path) -> Path:
        path.write_text(content, encoding="utf-8")
        log.info("Report Markdown salvato: %s", path)
        return path

    def _save_csv(self, df: pd.DataFrame, path: Path) -> Path:
        df.to_csv(path, index=False, encoding="utf-8")
        log.info("Report CSV salvato: %s", path)
        return path

    def _base_name(self, base_name: Optional[str], default: str) -> str:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        return (base_name or default) + f"_{ts}"

    # ---------- API ---------- #
    def generate_profile_report(
        self,
        profile: DatasetProfile,
        formats: Union[str, ReportFormats] = "json",
        base_name: Optional[str] = None,
    ) -> Dict[str, Optional[Path]]:
        """
        Ritorna dizionario con i path creati: {'json': Path|None, 'md': Path|None, 'csv': Path|None}
        Il CSV contiene una riga per colonna del dataset.
        """
        fmt = ReportFormats.from_token(formats) if isinstance(formats, str) else formats
        base = self._base_name(base_name, "profile")

        out: Dict[str, Optional[Path]] = {"json": None, "md": None, "csv": None}
        if fmt.json:
            out["json"] = self._save_json(profile.to_dict(), self.outputs_dir / f"{base}.json")
        if fmt.md:
            out["md"] = self._save_md(profile_markdown(profile), self.outputs_dir / f"{base}.md")
        if fmt.csv:
            out["csv"] = self._save_csv(profile_frame(profile), self.outputs_dir / f"{base}.csv")

        log.info("Report profilo generato. Formati: %s", ", ".join(k for k, v in out.items() if v))
        return out

    def generate_diff_report(
        self,
        result: DiffResult,
        formats: Union[str, ReportFormats] = "json",
        base_name: Optional[str] = None,
        title: str = "Confronto versioni",
    ) -> Dict[str, Optional[Path]]:
        """Come generate_profile_report; il CSV elenca le righe del diff con il loro stato."""
        fmt = ReportFormats.from_token(formats) if isinstance(formats, str) else formats
        base = self._base_name(base_name, "diff")

        out: Dict[str, Optional[Path]] = {"json": None, "md": None, "csv": None}
        if fmt.json:
            out["json"] = self._save_json(result.to_dict(), self.outputs_dir / f"{base}.json")
        if fmt.md:
            out["md"] = self._save_md(diff_markdown(result, title), self.outputs_dir / f"{base}.md")
        if fmt.csv:
            out["csv"] = self._save_csv(rows_frame(result), self.outputs_dir / f"{base}.csv")

        log.info("Report diff generato. Formati: %s", ", ".join(k for k, v in out.items() if v))
        return out
