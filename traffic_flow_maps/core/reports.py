# traffic_flow_maps/core/reports.py
from __future__ import annotations
from pathlib import Path
from typing import Literal
import numpy as np
import pandas as pd
from scipy.io import savemat

ReportFormat = Literal["csv", "mat", "both"]

SUMMARY_COLUMNS = ["street", "year", "n_stretches", "n_missing_cars",
                   "total_cars", "mean_cars", "max_cars"]

def _as_float(s: pd.Series) -> pd.Series:
    return pd.Series(pd.to_numeric(s, errors="coerce").to_numpy(dtype=float, na_value=np.nan), index=s.index)

def build_summary(dataset: pd.DataFrame) -> pd.DataFrame:
    """Per (street, year) traffic totals + TOTAL row.

    Stretches without a published count are counted in ``n_missing_cars`` and
    left out of the sums/means.
    """
    if dataset.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    rows: list[dict] = []
    for (street, year), grp in dataset.groupby(["street", "year"], sort=True):
        cars = _as_float(grp["cars"])
        known = cars.dropna()
        rows.append({
            "street": street,
            "year": int(year),
            "n_stretches": int(len(grp)),
            "n_missing_cars": int(cars.isna().sum()),
            "total_cars": float(known.sum()),
            "mean_cars": round(float(known.mean()), 3) if not known.empty else np.nan,
            "max_cars": float(known.max()) if not known.empty else np.nan,
        })

    all_cars = _as_float(dataset["cars"])
    total = {
        "street": "TOTAL", "year": "",
        "n_stretches": sum(r["n_stretches"] for r in rows),
        "n_missing_cars": sum(r["n_missing_cars"] for r in rows),
        "total_cars": float(all_cars.sum()),
        "mean_cars": "", "max_cars": float(all_cars.max()) if all_cars.notna().any() else np.nan,
    }
    return pd.DataFrame(rows + [total], columns=SUMMARY_COLUMNS)

def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> None:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df_out.to_csv(out_csv, index=False, encoding="utf-8")
    print(f"[OK] wrote report: {title} → {out_csv}")

def _to_mat_cellstr(seq: list) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    seq2 = [("" if s is None or (isinstance(s, float) and np.isnan(s)) else str(s)) for s in seq]
    arr = np.empty((len(seq2), 1), dtype=object)
    arr[:, 0] = seq2
    return arr

def _write_mat(df_out: pd.DataFrame, out_mat: Path, varname: str, title: str) -> None:
    """
    Save a MATLAB struct with one field per column.
    Text columns become cell arrays (Nx1), numeric columns double (Nx1) with NaN for missing.
    """
    out_mat.parent.mkdir(parents=True, exist_ok=True)

    mat_struct = {}
    for name in df_out.columns:
        numeric = pd.to_numeric(df_out[name], errors="coerce")
        is_text = df_out[name].dtype == object and numeric.isna().sum() > df_out[name].isna().sum()
        if is_text:
            mat_struct[name] = _to_mat_cellstr(df_out[name].tolist())
        else:
            mat_struct[name] = _as_float(df_out[name]).to_numpy().reshape(-1, 1)

    savemat(out_mat, {varname: mat_struct})
    print(f"[OK] wrote report: {title} → {out_mat}")

def _write(df_out: pd.DataFrame, out_base: Path, title: str, fmt: str, mat_variable: str) -> None:
    if fmt not in ("csv", "mat", "both"):
        raise ValueError(f"unknown report format {fmt!r} (expected csv, mat or both)")
    if fmt in ("csv", "both"):
        _write_csv(df_out, out_base.with_suffix(".csv"), title)
    if fmt in ("mat", "both"):
        _write_mat(df_out, out_base.with_suffix(".mat"), mat_variable, title)

def write_dataset(dataset: pd.DataFrame, out_base: Path, title: str,
                  fmt: ReportFormat = "csv", mat_variable: str = "streets") -> None:
    """
    Write the street dataset itself.
    - out_base is a *base path without extension* (e.g., .../street_dataset)
    - fmt: "csv" | "mat" | "both"
    """
    if dataset.empty:
        print(f"[INFO] {title}: no records; nothing written.")
        return
    _write(dataset, out_base, title, fmt, mat_variable)

def write_summary(dataset: pd.DataFrame, out_base: Path, title: str,
                  fmt: ReportFormat = "csv", mat_variable: str = "summary") -> None:
    if dataset.empty:
        return
    _write(build_summary(dataset), out_base, title, fmt, mat_variable)
