# traffic_flow_maps/main.py
from __future__ import annotations
from pathlib import Path
import logging
import sys
import yaml

from .core.geometry import load_geometry
from .core.pipeline import assemble_dataset, run_pipeline
from .utils.detect import discover_pages, read_pages

def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

def main(argv: list[str] | None = None):
    # ---------- config ----------
    argv = sys.argv[1:] if argv is None else argv
    here = Path(__file__).resolve().parent
    cfg_path = Path(argv[0]) if argv else here / "config.yaml"
    cfg = load_config(cfg_path)

    verbose = bool(cfg.get("logging", {}).get("verbose", True))
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    inp = cfg.get("input", {}) or {}
    in_path = Path(inp.get("path", "data")).resolve()
    recurse = bool(inp.get("recurse", False))
    exclude = tuple(inp.get("exclude", ["index"]) or ())
    out_root = Path(cfg.get("output", {}).get("root", "out")).resolve()
    out_root.mkdir(parents=True, exist_ok=True)

    if verbose:
        print(f"[cfg] input={in_path} (recurse={recurse}, exclude={list(exclude)})")
        print(f"[cfg] output={out_root}")

    # ---------- discover ----------
    detected = discover_pages(in_path, recurse=recurse, exclude=exclude)
    if not detected:
        print(f"[INFO] No street pages (.html/.htm) found under: {in_path}")
        sys.exit(0)
    if verbose:
        print(f"[detector] found {len(detected)} street page(s)")

    pages = read_pages(detected, encoding=str(inp.get("encoding", "utf-8")))

    # ---------- assemble ----------
    result = assemble_dataset(pages, cfg)
    for identifier, reason in result.failures:
        print(f"[WARN] skipped {Path(identifier).name}: {reason}")

    dataset = result.dataset
    if dataset.empty:
        print("[INFO] No stretch records extracted; exiting without reports.")
        sys.exit(0)

    if verbose:
        streets = dataset["street"].unique()
        print(
            f"[assemble] {len(dataset)} record(s) from {len(streets)} street(s), "
            f"{len(result.failures)} page(s) skipped"
        )

    # ---------- geometry (optional) ----------
    geo_cfg = cfg.get("geometry", {}) or {}
    geometry = None
    if geo_cfg.get("path"):
        geo_path = Path(geo_cfg["path"]).resolve()
        geometry = load_geometry(geo_path, name_property=str(geo_cfg.get("name_property", "name")))
        if verbose:
            print(f"[geometry] {len(geometry)} named street(s) from {geo_path.name}")

    run_pipeline(dataset, cfg, out_root, geometry=geometry)

    if verbose:
        print(f"[summary] finished with {len(dataset)} record(s)")

if __name__ == "__main__":
    main()
