"""Configurazione pytest e fixtures condivise."""
from __future__ import annotations

import os
import tempfile

# I log dei test non devono finire nella cartella logs/ del progetto
os.environ.setdefault("DATALENS_LOG_DIR", tempfile.mkdtemp(prefix="datalens_logs_"))

from pathlib import Path  # noqa: E402
from typing import Callable, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402

from datalens.dataset import DatasetProfile, profile_text  # noqa: E402
from datalens.engine import VersionRef, VersionSnapshot  # noqa: E402
from datalens.parser import RawTable  # noqa: E402

CITIES = ("Rome", "Milan", "Turin")
HEADER = "id,name,score,city,active"


def _row(i: int, score: float | int | None = None) -> str:
    value = score if score is not None else i * 10
    return f"{i},name{i},{value},{CITIES[i % 3]},{'true' if i % 2 else 'false'}"


def build_base_csv() -> str:
    """20 righe: id e score numerici, name testo, city categorica, active booleana."""
    return "\n".join([HEADER] + [_row(i) for i in range(1, 21)]) + "\n"


def build_compare_csv() -> str:
    """Come la base, con score di id=2 cambiato (+5), score di id=5 entro tolleranza e id=21 aggiunto."""
    lines = [HEADER]
    for i in range(1, 21):
        if i == 2:
            lines.append(_row(i, 25))
        elif i == 5:
            lines.append(_row(i, 50.5))
        else:
            lines.append(_row(i))
    lines.append(_row(21))
    return "\n".join(lines) + "\n"


BASE_CSV = build_base_csv()
COMPARE_CSV = build_compare_csv()


@pytest.fixture
def base_csv() -> str:
    return BASE_CSV


@pytest.fixture
def compare_csv() -> str:
    return COMPARE_CSV


@pytest.fixture
def base_profiled() -> Tuple[DatasetProfile, RawTable]:
    return profile_text(BASE_CSV, "base.csv")


@pytest.fixture
def compare_profiled() -> Tuple[DatasetProfile, RawTable]:
    return profile_text(COMPARE_CSV, "compare.csv")


@pytest.fixture
def make_snapshot() -> Callable[..., VersionSnapshot]:
    """Factory: profila un testo CSV e lo impacchetta come versione."""

    def _make(version_id: str, text: str, parent_id: Optional[str] = None) -> VersionSnapshot:
        profile, table = profile_text(text, f"{version_id}.csv")
        return VersionSnapshot(VersionRef(version_id, parent_id=parent_id), profile, table.rows)

    return _make


@pytest.fixture
def base_snapshot(make_snapshot) -> VersionSnapshot:
    return make_snapshot("v1", BASE_CSV)


@pytest.fixture
def compare_snapshot(make_snapshot) -> VersionSnapshot:
    return make_snapshot("v2", COMPARE_CSV, parent_id="v1")


@pytest.fixture
def csv_files(tmp_path: Path) -> Tuple[Path, Path]:
    """Le due versioni scritte su disco, per i test della CLI."""
    base = tmp_path / "base.csv"
    compare = tmp_path / "compare.csv"
    base.write_text(BASE_CSV, encoding="utf-8")
    compare.write_text(COMPARE_CSV, encoding="utf-8")
    return base, compare
