from __future__ import annotations

import logging
import os
from datetime import datetime
from logging import Logger
from pathlib import Path
from typing import Optional

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"


def _level_from_env(name: str, default: int) -> int:
    value = os.environ.get(name, "").strip().upper()
    if not value:
        return default
    level = logging.getLevelName(value)
    return level if isinstance(level, int) else default


class LogManager:
    """
    Logger gerarchico 'datalens.<componente>'.

    Alla prima istanza configura il logger base una sola volta:
    - file giornaliero UTF-8 'datalens_YYYYMMDD.log' in logs/ accanto alla
      root del progetto, oppure in DATALENS_LOG_DIR,
    - console su stderr, solo WARNING e superiori (DATALENS_CONSOLE_LEVEL),
    - livello del file da DATALENS_LOG_LEVEL (default INFO).
    Gli handler già presenti non vengono duplicati.
    """

    _configured: bool = False
    _base_logger_name: str = "datalens"
    _logfile_path: Optional[Path] = None
    _console_handler: Optional[logging.Handler] = None

    def __init__(self, component: str = "app", level: Optional[int] = None) -> None:
        self.component = component.strip() or "app"
        self.level = level
        self._ensure_configured()

    @classmethod
    def logs_dir(cls) -> Path:
        override = os.environ.get("DATALENS_LOG_DIR")
        if override:
            return Path(override)
        # .../datalens/logger.py -> root del progetto = parent di 'datalens'
        return Path(__file__).resolve().parents[1] / "logs"

    @classmethod
    def _ensure_configured(cls) -> None:
        if cls._configured:
            return

        base = logging.getLogger(cls._base_logger_name)
        base.setLevel(_level_from_env("DATALENS_LOG_LEVEL", logging.INFO))
        base.propagate = False

        logs_dir = cls.logs_dir()
        logs_dir.mkdir(parents=True, exist_ok=True)
        cls._logfile_path = logs_dir / f"datalens_{datetime.now():%Y%m%d}.log"

        if not any(
            isinstance(h, logging.FileHandler) and h.baseFilename == str(cls._logfile_path)
            for h in base.handlers
        ):
            fh = logging.FileHandler(cls._logfile_path, encoding="utf-8")
            fh.setFormatter(logging.Formatter(FILE_FORMAT))
            base.addHandler(fh)

        console = next(
            (
                h
                for h in base.handlers
                if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            ),
            None,
        )
        if console is None:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
            console.setLevel(_level_from_env("DATALENS_CONSOLE_LEVEL", logging.WARNING))
            base.addHandler(console)
        cls._console_handler = console

        cls._configured = True
        base.info("Log su file: %s", cls._logfile_path)

    @classmethod
    def set_console_level(cls, level: int) -> None:
        """Cambia la soglia della console (es. INFO con --verbose); il file resta invariato."""
        cls._ensure_configured()
        if cls._console_handler is not None:
            cls._console_handler.setLevel(level)

    def get_logger(self) -> Logger:
        logger = logging.getLogger(self._base_logger_name).getChild(self.component)
        if self.level is not None:
            logger.setLevel(self.level)
        return logger

    @classmethod
    def logfile_path(cls) -> Optional[Path]:
        return cls._logfile_path
