# traffic_flow_maps/utils/detect.py
from __future__ import annotations
from pathlib import Path
from dataclasses import dataclass
from typing import Iterable
import logging

PAGE_SUFFIXES = (".html", ".htm")

_LOG = logging.getLogger(__name__)

@dataclass(frozen=True)
class DetectedPage:
    path: Path        # actual path on disk

def is_street_page(p: Path, exclude: Iterable[str] = ("index",)) -> bool:
    """
    A street page is an .html/.htm file whose stem is not a navigation page
    (index, overview ...), compared case-insensitively.
    """
    if p.suffix.lower() not in PAGE_SUFFIXES:
        return False
    return p.stem.lower() not in {str(e).lower() for e in exclude}

def discover_pages(root: Path, recurse: bool = True,
                   exclude: Iterable[str] = ("index",)) -> list[DetectedPage]:
    """
    If 'root' is a file -> return that one page (if it is a street page).
    If 'root' is a folder -> walk (optionally recursively) and collect street pages.
    """
    exclude = tuple(exclude)
    items: list[DetectedPage] = []
    if root.is_file():
        if is_street_page(root, exclude):
            items.append(DetectedPage(root.resolve()))
        return items

    it = root.rglob("*") if recurse else root.glob("*")
    for p in it:
        if p.is_file() and is_street_page(p, exclude):
            items.append(DetectedPage(p.resolve()))

    # deterministic ordering
    items.sort(key=lambda x: str(x.path))
    return items

def read_pages(items: Iterable[DetectedPage], encoding: str = "utf-8") -> list[tuple[str, str]]:
    """(identifier, html) pairs; undecodable bytes are replaced rather than failing the page."""
    pages = []
    for item in items:
        pages.append((str(item.path), item.path.read_text(encoding=encoding, errors="replace")))
    _LOG.debug("read %d page(s)", len(pages))
    return pages
