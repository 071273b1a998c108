"""
Configurazione delle soglie di profiling e di confronto tra versioni.

I default riproducono esattamente il comportamento storico: cambiarli
produce profili e diff non confrontabili con quelli già pubblicati.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError
from .logger import LogManager

log = LogManager("config").get_logger()

CONFIG_VERSION = "1.0"

DEFAULT_MISSING_TOKENS: Tuple[str, ...] = ("", "na", "nan", "null")


@dataclass(frozen=True)
class ProfilerConfig:
    # type inference
    type_confidence_threshold: float = 0.8
    categorical_unique_ratio: float = 0.2
    missing_tokens: Tuple[str, ...] = DEFAULT_MISSING_TOKENS
    # numeric statistics
    iqr_multiplier: float = 1.5
    histogram_buckets: int = 5
    skew_threshold: float = 1.0
    # assembler
    preview_rows: int = 100
    column_batch_size: int = 10
    # correlation
    correlation_min_pairs: int = 6
    correlation_max_columns: int = 50
    correlation_sample_size: int = 5000


@dataclass(frozen=True)
class DiffConfig:
    numeric_tolerance: float = 1.0
    category_shift_threshold: float = 5.0
    max_category_shifts: int = 3
    correlation_delta_threshold: float = 0.1
    max_correlation_changes: int = 5
    page_size: int = 1000
    max_stat_samples: int = 10000
    id_column: Optional[str] = None
    cache_size: int = 8


@dataclass(frozen=True)
class DatalensConfig:
    profiler: ProfilerConfig = field(default_factory=ProfilerConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)

    def to_dict(self) -> Dict[str, Any]:
        profiler = asdict(self.profiler)
        profiler["missing_tokens"] = list(profiler["missing_tokens"])
        return {
            "version": CONFIG_VERSION,
            "profiler": profiler,
            "diff": asdict(self.diff),
        }

    def with_diff(self, **changes: Any) -> "DatalensConfig":
        return replace(self, diff=replace(self.diff, **changes))


def _section(cls, data: Any, section: str):
    """Costruisce la dataclass della sezione ignorando (con warning) le chiavi sconosciute."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Sezione '{section}' non valida: atteso un oggetto JSON")

    known = {f.name for f in fields(cls)}
    values = {}
    for key, value in data.items():
        if key not in known:
            log.warning("Chiave di configurazione sconosciuta ignorata: %s.%s", section, key)
            continue
        values[key] = value

    if "missing_tokens" in values:
        values["missing_tokens"] = tuple(str(t).strip().lower() for t in values["missing_tokens"])

    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigError(f"Sezione '{section}' non valida: {e}") from e


def config_from_dict(data: Dict[str, Any]) -> DatalensConfig:
    version = data.get("version", CONFIG_VERSION)
    if version != CONFIG_VERSION:
        log.warning("Versione configurazione %s diversa da %s", version, CONFIG_VERSION)
    return DatalensConfig(
        profiler=_section(ProfilerConfig, data.get("profiler"), "profiler"),
        diff=_section(DiffConfig, data.get("diff"), "diff"),
    )


def load_config(path: Optional[str | Path] = None) -> DatalensConfig:
    """
    Carica la configurazione da un file JSON.

    Args:
        path: percorso del file; None restituisce i default

    Raises:
        ConfigError: se il file non esiste o non è JSON valido
    """
    if path is None:
        return DatalensConfig()

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"File di configurazione non trovato: {cfg_path}")

    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Configurazione '{cfg_path}' corrotta (JSON invalido): {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configurazione '{cfg_path}' non valida: atteso un oggetto JSON")

    config = config_from_dict(data)
    log.info("Configurazione caricata: %s", cfg_path)
    return config


def save_config(config: DatalensConfig, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    return target
