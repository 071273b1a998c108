"""
datalens: profiling di file tabellari e confronto tra versioni.

Copy-on-Write attivo globalmente: i profili leggono i DataFrame senza copiarli.
"""

import pandas as pd

# Enable Copy-on-Write mode globally (Pandas 2.0+)
pd.options.mode.copy_on_write = True

from .config import DatalensConfig, DiffConfig, ProfilerConfig, load_config  # noqa: E402
from .dataset import DatasetProfile, ProfileBuilder, profile_bytes, profile_table, profile_text  # noqa: E402
from .engine import DiffCache, DiffResult, VersionDiffEngine, VersionRef, VersionSnapshot  # noqa: E402
from .errors import ConfigError, DatalensError, ParseError  # noqa: E402
from .parser import RawTable, parse_bytes, parse_delimited, parse_text  # noqa: E402

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "DatalensConfig",
    "DatalensError",
    "DatasetProfile",
    "DiffCache",
    "DiffConfig",
    "DiffResult",
    "ParseError",
    "ProfileBuilder",
    "ProfilerConfig",
    "RawTable",
    "VersionDiffEngine",
    "VersionRef",
    "VersionSnapshot",
    "load_config",
    "parse_bytes",
    "parse_delimited",
    "parse_text",
    "profile_bytes",
    "profile_table",
    "profile_text",
]
