# traffic_flow_maps/loaders/html_loader.py
from __future__ import annotations
from pathlib import Path, PurePosixPath
import logging
import pandas as pd
from bs4 import BeautifulSoup

from ..core.errors import MissingTableError
from ..core.model import records_to_frame
from ..core.normalize import normalize_rows, HEADER_TOKEN, STRETCH_DELIMITER

_LOG = logging.getLogger(__name__)

# ---------- identifier helpers ----------
def street_from_identifier(identifier: str | Path) -> str:
    """'data/Avenyn.html' -> 'Avenyn' (directory and extension stripped)."""
    name = PurePosixPath(str(identifier).replace("\\", "/")).name
    return Path(name).stem

def _cell_text(cell) -> str:
    # collapse runs of whitespace, including non-breaking spaces
    return " ".join(cell.get_text(" ").split())

# ---------- table extraction ----------
def extract_rows(html: str, source: str = "<html>") -> list[list[str]]:
    """
    Rows of the *first* <table> in the document, each as its list of cell texts.
    Short rows are padded with '' up to the widest row of that table.
    Rows belonging to tables nested inside the first one are not included.
    """
    soup = BeautifulSoup(html, "lxml")
    table = soup.find("table")
    if table is None:
        raise MissingTableError(source, "no <table> element found")

    rows: list[list[str]] = []
    for tr in table.find_all("tr"):
        if tr.find_parent("table") is not table:
            continue
        rows.append([_cell_text(td) for td in tr.find_all(["td", "th"], recursive=False)])

    width = max((len(r) for r in rows), default=0)
    return [r + [""] * (width - len(r)) for r in rows]

# ---------- public loader ----------
def load(identifier: str, html: str, cfg: dict | None = None) -> pd.DataFrame:
    """
    One street page -> DataFrame with canonical columns (street, from, to, year, cars).
    Raises TableFormatError subclasses; the caller decides whether to skip the page.
    """
    parsing = (cfg or {}).get("parsing", {}) or {}
    source = str(identifier)
    street = street_from_identifier(identifier)

    rows = extract_rows(html, source)
    records = normalize_rows(
        rows,
        source=source,
        header_token=str(parsing.get("header_token", HEADER_TOKEN)),
        delimiter=str(parsing.get("delimiter", STRETCH_DELIMITER)),
    )
    _LOG.debug("%s: %d row(s) -> %d record(s) for street %s", source, len(rows), len(records), street)
    return records_to_frame(records, street)
