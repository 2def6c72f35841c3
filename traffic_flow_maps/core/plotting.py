# traffic_flow_maps/core/plotting.py
from __future__ import annotations
from pathlib import Path
import re
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection

def _sanitize(name: str) -> str:
    s = re.sub(r"[^\w.-]+", "_", name).strip("_")
    return s[:120] if len(s) > 120 else s

def plot_file_stems(streets) -> dict[str, str]:
    """
    One file stem per street, unique even on case-insensitive filesystems:
    names that sanitize to the same stem get a _2, _3 ... suffix in sorted order.
    """
    stems: dict[str, str] = {}
    taken: set[str] = set()
    for street in sorted({str(s) for s in streets}):
        base = _sanitize(street) or "street"
        stem, n = base, 1
        while stem.casefold() in taken:
            n += 1
            stem = f"{base}_{n}"
        taken.add(stem.casefold())
        stems[street] = stem
    return stems

def save_street_plot(street: str, df_street: pd.DataFrame, out_dir: Path, legend_ncol: int = 2,
                     file_stem: str | None = None):
    """Cars per day vs year, one line per stretch of the street."""
    if df_street.empty:
        return
    out_dir.mkdir(parents=True, exist_ok=True)

    prepared: list[tuple[np.ndarray, np.ndarray, str]] = []
    for (start, end), grp in df_street.groupby(["from", "to"], sort=False):
        grp = grp.sort_values("year")
        cars = grp["cars"].to_numpy(dtype=float, na_value=np.nan)
        mask = ~np.isnan(cars)
        if not mask.any():
            continue
        prepared.append((grp["year"].to_numpy()[mask], cars[mask], f"{start} – {end}"))

    if not prepared:
        print(f"[INFO] {street}: no published traffic counts; skipping plot.")
        return

    plt.figure(figsize=(11, 6))
    for x, y, label in prepared:
        plt.plot(x, y, marker="o", label=label)
    plt.xlabel("År")
    plt.ylabel("Fordon per dygn")
    plt.title(f"Street: {street} — Trafikflöde per delsträcka")
    plt.grid(True, alpha=0.3)
    plt.gca().xaxis.get_major_locator().set_params(integer=True)
    plt.legend(
        fontsize=8,
        ncol=legend_ncol,
        loc="upper center",
        bbox_to_anchor=(0.5, -0.15),
        frameon=False,
    )
    plt.tight_layout(rect=[0, 0.18, 1, 1])
    out_path = out_dir / f"{file_stem or _sanitize(street) or 'street'}.png"
    plt.savefig(out_path, dpi=160)
    plt.close()
    print(f"[OK] {street}: {len(prepared)} stretch(es) → {out_path}")

def street_values(dataset: pd.DataFrame, year: int | None = None) -> pd.Series:
    """
    Mean cars per street for the map colouring.
    year=None -> each street's latest year with a published count.
    """
    df = dataset.assign(cars=dataset["cars"].to_numpy(dtype=float, na_value=np.nan))
    df = df.dropna(subset=["cars"])
    if year is not None:
        df = df[df["year"] == year]
    else:
        latest = df.groupby("street")["year"].transform("max")
        df = df[df["year"] == latest]
    return df.groupby("street")["cars"].mean()

def save_traffic_map(dataset: pd.DataFrame, geometry: dict[str, list[np.ndarray]],
                     out_path: Path, year: int | None = None, cmap: str = "YlOrRd"):
    """Static map: street polylines coloured by mean cars per day, grey where unknown."""
    values = street_values(dataset, year) if not dataset.empty else pd.Series(dtype=float)

    coloured_segs, coloured_vals, grey_segs = [], [], []
    for street, lines in geometry.items():
        if street in values.index:
            coloured_segs.extend(lines)
            coloured_vals.extend([float(values[street])] * len(lines))
        else:
            grey_segs.extend(lines)

    if not coloured_segs and not grey_segs:
        print("[INFO] traffic map: geometry is empty; skipping.")
        return
    missing = sorted(set(values.index) - set(geometry))
    if missing:
        print(f"[INFO] traffic map: no geometry for {len(missing)} street(s): {', '.join(missing)}")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 10))
    if grey_segs:
        ax.add_collection(LineCollection(grey_segs, colors="lightgrey", linewidths=1.0))
    if coloured_segs:
        lc = LineCollection(coloured_segs, cmap=cmap, linewidths=3.0)
        lc.set_array(np.asarray(coloured_vals))
        ax.add_collection(lc)
        fig.colorbar(lc, ax=ax, shrink=0.7, label="Fordon per dygn")
    ax.autoscale()
    ax.set_aspect("equal", adjustable="datalim")
    ax.set_axis_off()
    ax.set_title("Trafikflöde" + (f" {year}" if year is not None else " (senaste år)"))
    fig.tight_layout()
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    print(f"[OK] traffic map: {len(values)} street(s) coloured → {out_path}")
