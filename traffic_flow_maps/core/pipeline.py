# traffic_flow_maps/core/pipeline.py
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable
import logging
import numpy as np
import pandas as pd

from .errors import TableFormatError
from .model import AssemblyResult, DATASET_COLUMNS, empty_dataset
from .plotting import plot_file_stems, save_street_plot, save_traffic_map
from .reports import write_dataset, write_summary
from ..loaders import html_loader

_LOG = logging.getLogger(__name__)

ON_ERROR_POLICIES = ("skip", "raise")

def _assembly_options(cfg: dict | None) -> tuple[str, int]:
    asm = (cfg or {}).get("assembly", {}) or {}
    on_error = str(asm.get("on_error", "skip")).lower()
    if on_error not in ON_ERROR_POLICIES:
        raise ValueError(f"assembly.on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")
    workers = max(1, int(asm.get("workers", 1)))
    return on_error, workers

def _load_one(page: tuple[str, str], cfg: dict | None) -> pd.DataFrame | TableFormatError:
    identifier, html = page
    try:
        return html_loader.load(identifier, html, cfg)
    except TableFormatError as e:
        return e

def assemble_dataset(pages: Iterable[tuple[str, str]], cfg: dict | None = None) -> AssemblyResult:
    """
    (identifier, html) pairs -> one street dataset.

    Pages are processed in identifier order; each page is extracted and normalized
    on its own (forward-fill never crosses pages) and the fragments are concatenated
    in that order. With assembly.on_error == "raise" the first bad page aborts the
    batch; with "skip" it is logged, reported in ``failures`` and left out.
    """
    on_error, workers = _assembly_options(cfg)
    ordered = sorted(pages, key=lambda p: str(p[0]))

    if workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(lambda p: _load_one(p, cfg), ordered))
    else:
        outcomes = [_load_one(p, cfg) for p in ordered]

    frames: list[pd.DataFrame] = []
    failures: list[tuple[str, str]] = []
    for (identifier, _), outcome in zip(ordered, outcomes):
        if isinstance(outcome, TableFormatError):
            if on_error == "raise":
                raise outcome
            _LOG.warning("skipping %s: %s (%s)", identifier, outcome, type(outcome).__name__)
            failures.append((str(identifier), f"{type(outcome).__name__}: {outcome}"))
            continue
        if outcome.empty:
            _LOG.info("%s: no stretch rows after filtering", identifier)
            continue
        frames.append(outcome)

    if frames:
        dataset = pd.concat(frames, ignore_index=True)[list(DATASET_COLUMNS)]
        dataset["cars"] = dataset["cars"].astype("Int64")
    else:
        dataset = empty_dataset()
    return AssemblyResult(dataset=dataset, failures=failures)

def run_pipeline(dataset: pd.DataFrame, cfg: dict, out_root: Path,
                 geometry: dict[str, list[np.ndarray]] | None = None) -> None:
    """Write the dataset + summary reports, the per-street plots and (with geometry) the map."""
    out_root.mkdir(parents=True, exist_ok=True)

    rep = cfg.get("reports", {}) or {}
    fmt = str(rep.get("format", "csv")).lower()
    mat_var = str(rep.get("mat_variable", "streets"))

    write_dataset(dataset, out_root / "street_dataset", "street dataset", fmt=fmt, mat_variable=mat_var)
    write_summary(dataset, out_root / "summary", "per-street summary", fmt=fmt,
                  mat_variable=f"{mat_var}_summary")

    plots = cfg.get("plots", {}) or {}
    if bool(plots.get("streets", True)) and not dataset.empty:
        legend_ncol = int(plots.get("legend_ncol", 2))
        stems = plot_file_stems(dataset["street"].unique())
        for street, df_street in dataset.groupby("street", sort=True):
            save_street_plot(str(street), df_street, out_root / "streets", legend_ncol,
                             file_stem=stems[str(street)])

    if bool(plots.get("map", True)):
        if geometry:
            map_year = plots.get("map_year", None)
            save_traffic_map(dataset, geometry, out_root / "traffic_map.png",
                             year=int(map_year) if map_year is not None else None)
        else:
            print("[INFO] no road geometry supplied; skipping traffic map.")
