# traffic_flow_maps/core/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable
import pandas as pd

DATASET_COLUMNS = ("street", "from", "to", "year", "cars")

@dataclass(frozen=True)
class StretchRecord:
    from_: str                # stretch start, e.g. "Kungsportsplatsen"
    to: str                   # stretch end
    year: int
    cars: int | None          # vehicles per day; None when unpublished

@dataclass
class AssemblyResult:
    dataset: pd.DataFrame     # canonical columns: DATASET_COLUMNS
    failures: list[tuple[str, str]] = field(default_factory=list)   # (identifier, reason)

def empty_dataset() -> pd.DataFrame:
    return pd.DataFrame({
        "street": pd.Series(dtype="object"),
        "from":   pd.Series(dtype="object"),
        "to":     pd.Series(dtype="object"),
        "year":   pd.Series(dtype="int64"),
        "cars":   pd.Series(dtype="Int64"),
    })

def records_to_frame(records: Iterable[StretchRecord], street: str) -> pd.DataFrame:
    records = list(records)
    if not records:
        return empty_dataset()
    return pd.DataFrame({
        "street": [street] * len(records),
        "from":   [r.from_ for r in records],
        "to":     [r.to for r in records],
        "year":   pd.Series([r.year for r in records], dtype="int64"),
        "cars":   pd.Series([r.cars for r in records], dtype="Int64"),
    }, columns=list(DATASET_COLUMNS))
