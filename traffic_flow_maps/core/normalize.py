# traffic_flow_maps/core/normalize.py
from __future__ import annotations
import logging
import re
from typing import Sequence

from .errors import MalformedStretchError, MalformedYearError, MissingTableError, TableShapeError
from .model import StretchRecord

HEADER_TOKEN = "Delsträcka"
STRETCH_DELIMITER = " – "
N_COLUMNS = 3                            # stretch, year, cars (fixed positions)

_NON_DIGIT = re.compile(r"[^0-9]")
_YEAR = re.compile(r"[0-9]+")
_LOG = logging.getLogger(__name__)

def split_stretch(label: str, delimiter: str = STRETCH_DELIMITER,
                  source: str = "<table>") -> tuple[str, str] | None:
    """'A – B' -> ('A', 'B'); '' -> None (to be forward-filled)."""
    label = (label or "").strip()
    if not label:
        return None
    parts = label.split(delimiter)
    if len(parts) != 2:
        raise MalformedStretchError(source, f"stretch {label!r} does not split into two endpoints on {delimiter!r}")
    start, end = parts[0].strip(), parts[1].strip()
    if not start or not end:
        raise MalformedStretchError(source, f"stretch {label!r} has an empty endpoint")
    return start, end

def parse_year(label: str, source: str = "<table>") -> int:
    text = "" if label is None else str(label).strip()
    if not _YEAR.fullmatch(text):
        raise MalformedYearError(source, f"year {label!r} is not an integer")
    return int(text)

def parse_cars(label) -> int | None:
    """Keep digits only: '12 345 bilar/dygn' -> 12345, '' or '-' -> None."""
    digits = _NON_DIGIT.sub("", "" if label is None else str(label))
    return int(digits) if digits else None

def normalize_rows(rows: Sequence[Sequence[str]],
                   source: str = "<table>",
                   header_token: str = HEADER_TOKEN,
                   delimiter: str = STRETCH_DELIMITER) -> list[StretchRecord]:
    """
    Turn the raw rows of one stretch table into StretchRecords.

    Steps, in order:
      1) fixed schema: the table must be at least three cells wide; keep cells 0..2
      2) drop repeated header rows (first cell == header_token) and fully blank rows
      3) split the stretch label into from/to
      4) forward-fill missing stretches from the previous row of this table
      5) parse year (required) and cars (nullable)
    """
    if not rows:
        return []
    width = max(len(r) for r in rows)
    if width < N_COLUMNS:
        raise TableShapeError(source, f"expected at least {N_COLUMNS} columns, table has {width}")

    records: list[StretchRecord] = []
    last: tuple[str, str] | None = None
    dropped = 0
    for raw in rows:
        cells = [("" if c is None else str(c).strip()) for c in list(raw)[:N_COLUMNS]]
        cells += [""] * (N_COLUMNS - len(cells))
        stretch_label, year_label, cars_label = cells

        if stretch_label == header_token or not any(cells):
            dropped += 1
            continue

        stretch = split_stretch(stretch_label, delimiter, source)
        if stretch is None:
            if last is None:
                raise MissingTableError(source, "first data row has no stretch to fill from")
            stretch = last
        last = stretch

        records.append(StretchRecord(
            from_=stretch[0],
            to=stretch[1],
            year=parse_year(year_label, source),
            cars=parse_cars(cars_label),
        ))

    if dropped:
        _LOG.debug("%s: dropped %d header/blank row(s)", source, dropped)
    return records
