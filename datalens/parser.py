from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import ParseError
from .logger import LogManager

log = LogManager("parser").get_logger()

DELIMITER_CANDIDATES: Tuple[str, ...] = (",", ";", "\t", "|")
QUOTE_CHAR = '"'


@dataclass(frozen=True)
class RawTable:
    """Header plus rows of string cells; every row has len(columns) cells."""

    columns: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    delimiter: str = ","
    dropped_rows: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_values(self, index: int) -> List[str]:
        return [row[index] for row in self.rows]


# ---------- BOM / encoding ----------
def detect_bom(raw: bytes) -> str:
    """Picks the text encoding from the Byte Order Mark, utf-8 when there is none."""
    start = raw[:4]
    if start.startswith(b"\xff\xfe"):
        return "utf-16"
    if start.startswith(b"\xfe\xff"):
        return "utf-16-be"
    if start.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    return "utf-8"


def decode_bytes(raw: bytes, encoding: Optional[str] = None) -> str:
    encoding = encoding or detect_bom(raw)
    text = raw.decode(encoding, errors="replace")
    # utf-16-be keeps the BOM as a character
    return text.lstrip("\ufeff")


# ---------- Delimiter ----------
def detect_delimiter(
    text: str,
    max_lines: int = 5,
    candidates: Sequence[str] = DELIMITER_CANDIDATES,
) -> str:
    """
    Chooses the delimiter from the first lines of the text.

    A candidate that appears at least 3x more often than every other one wins
    outright; otherwise the score is count * consistency, where consistency
    is 1 / (1 + std of the per-line counts). Defaults to ','.
    """
    lines = text.strip().split("\n")[:max_lines]
    if not lines:
        return ","

    per_line = {c: [line.count(c) for line in lines] for c in candidates}
    totals = {c: sum(counts) for c, counts in per_line.items()}
    present = [c for c in candidates if totals[c] > 0]

    if not present:
        return ","
    if len(present) == 1:
        return present[0]

    for c in present:
        others = [totals[o] for o in present if o != c]
        if all(totals[c] >= 3 * other for other in others):
            return c

    def consistency(counts: List[int]) -> float:
        if len(counts) < 2:
            return 0.0
        return 1.0 / (1.0 + statistics.pstdev(counts))

    scores = {c: totals[c] * consistency(per_line[c]) for c in present}
    best = max(scores.values())
    return next(c for c in present if scores[c] == best)


# ---------- Tokenizer ----------
def split_line(line: str, delimiter: str = ",") -> List[str]:
    """Splits one line; a double quote toggles quoting and is not kept in the field."""
    if QUOTE_CHAR not in line:
        return line.split(delimiter)

    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == QUOTE_CHAR:
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)
    values.append("".join(current))
    return values


def parse_delimited(text: str, delimiter: str = ",") -> RawTable:
    """
    Tokenizes delimited text into a RawTable.

    The first non-blank line is the header. Lines whose field count differs
    from the header, or whose fields are all blank, are dropped.

    Raises:
        ParseError: when no header plus at least one data row remain.
    """
    if not delimiter:
        raise ParseError("Delimiter must be a non-empty string")

    lines = text.split("\n")
    header: Optional[Tuple[str, ...]] = None
    rows: List[Tuple[str, ...]] = []
    dropped = 0

    for line in lines:
        if not line.strip():
            continue
        values = split_line(line, delimiter)
        if header is None:
            header = tuple(values)
            continue
        if len(values) != len(header) or all(not v.strip() for v in values):
            dropped += 1
            continue
        rows.append(tuple(values))

    if header is None or not rows:
        msg = "The input does not contain enough data (a header and at least one row are required)"
        log.error("%s: %d righe utilizzabili, %d scartate", msg, len(rows), dropped)
        raise ParseError(msg)

    if dropped:
        log.info("Scartate %d righe malformate o vuote", dropped)

    return RawTable(columns=header, rows=tuple(rows), delimiter=delimiter, dropped_rows=dropped)


def parse_text(text: str, delimiter: Optional[str] = None) -> RawTable:
    delim = delimiter or detect_delimiter(text)
    log.info("Parsing del testo con delimitatore=%r", delim)
    return parse_delimited(text, delim)


def parse_bytes(raw: bytes, delimiter: Optional[str] = None, encoding: Optional[str] = None) -> RawTable:
    return parse_text(decode_bytes(raw, encoding), delimiter)
