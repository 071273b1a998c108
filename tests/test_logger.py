"""Test per datalens/logger.py."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from datalens.diff import align_rows
from datalens.logger import LogManager


def test_hierarchical_name():
    logger = LogManager("parser").get_logger()
    assert logger.name == "datalens.parser"
    assert logger.parent.name == "datalens"


def test_logfile_in_configured_dir():
    LogManager("test")
    path = LogManager.logfile_path()
    assert path is not None
    assert path.parent == Path(os.environ["DATALENS_LOG_DIR"])
    assert path.name.startswith("datalens_") and path.suffix == ".log"


def test_messages_written_to_file():
    logger = LogManager("test_file").get_logger()
    logger.warning("messaggio di prova %d", 42)
    for handler in logging.getLogger("datalens").handlers:
        handler.flush()
    content = LogManager.logfile_path().read_text(encoding="utf-8")
    assert "datalens.test_file" in content
    assert "messaggio di prova 42" in content


def test_no_duplicate_handlers():
    before = len(logging.getLogger("datalens").handlers)
    LogManager("a")
    LogManager("b")
    assert len(logging.getLogger("datalens").handlers) == before


def test_explicit_level():
    logger = LogManager("quiet", level=logging.ERROR).get_logger()
    assert logger.level == logging.ERROR


def test_component_messages_in_italian():
    """I messaggi dei componenti finiscono nel file, in italiano come il resto dei log."""
    align_rows(["k", "v"], [("1", "a"), ("1", "b")], ["k", "v"], [("1", "a")], id_column="k")
    for handler in logging.getLogger("datalens").handlers:
        handler.flush()
    content = LogManager.logfile_path().read_text(encoding="utf-8")
    assert "datalens.diff" in content
    assert "Colonna chiave 'k' assente o non univoca" in content
