# traffic_flow_maps/core/geometry.py
from __future__ import annotations
from pathlib import Path
import json
import logging
import numpy as np

_LOG = logging.getLogger(__name__)

def _lines_of(geom: dict) -> list[np.ndarray]:
    gtype = (geom or {}).get("type")
    coords = (geom or {}).get("coordinates") or []
    if gtype == "LineString":
        parts = [coords]
    elif gtype == "MultiLineString":
        parts = coords
    else:
        return []
    return [np.asarray(p, dtype=float)[:, :2] for p in parts if len(p) >= 2]

def geometry_from_geojson(data: dict, name_property: str = "name") -> dict[str, list[np.ndarray]]:
    """
    GeoJSON FeatureCollection -> {street name: [Nx2 (lon, lat) arrays]}.
    Only (Multi)LineString features with a name are kept; a street split over
    several OSM ways collects all of its pieces.
    """
    out: dict[str, list[np.ndarray]] = {}
    skipped = 0
    for feat in data.get("features", []):
        name = (feat.get("properties") or {}).get(name_property)
        lines = _lines_of(feat.get("geometry"))
        if not name or not lines:
            skipped += 1
            continue
        out.setdefault(str(name).strip(), []).extend(lines)
    if skipped:
        _LOG.debug("geometry: ignored %d unnamed or non-line feature(s)", skipped)
    return out

def load_geometry(path: Path, name_property: str = "name") -> dict[str, list[np.ndarray]]:
    with Path(path).open("r", encoding="utf-8") as f:
        return geometry_from_geojson(json.load(f), name_property=name_property)
