import json
from pathlib import Path
import tempfile
import unittest

import numpy as np
import pandas as pd
from scipy.io import loadmat

from traffic_flow_maps.core.errors import MissingTableError
from traffic_flow_maps.core.geometry import geometry_from_geojson, load_geometry
from traffic_flow_maps.core.pipeline import assemble_dataset, run_pipeline
from traffic_flow_maps.core.plotting import plot_file_stems, street_values
from traffic_flow_maps.core.reports import build_summary
from traffic_flow_maps.utils.detect import discover_pages, read_pages


def _page(*rows):
    body = "<tr><th>Delsträcka</th><th>År</th><th>ÅMVD</th></tr>"
    for row in rows:
        body += "<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>"
    return f"<html><body><table>{body}</table></body></html>"


AVENYN = _page(["Kungsportsplatsen – Vasagatan", "2015", "12 345"], ["", "2016", "13 000"])
GOTGATAN = _page(["Medborgarplatsen – Skanstull", "2015", ""], ["Slussen – Medborgarplatsen", "2015", "8 100"])
BROKEN = "<html><body><p>Ingen tabell</p></body></html>"
NO_FIRST_STRETCH = _page(["", "2015", "100"])


class AssemblyTests(unittest.TestCase):
    def test_pages_are_tagged_and_concatenated_in_identifier_order(self):
        result = assemble_dataset([("data/Gotgatan.html", GOTGATAN), ("data/Avenyn.html", AVENYN)])
        df = result.dataset
        self.assertEqual([], result.failures)
        self.assertEqual(["Avenyn", "Avenyn", "Gotgatan", "Gotgatan"], df["street"].tolist())
        self.assertEqual([12345, 13000], df.loc[df["street"] == "Avenyn", "cars"].tolist())
        self.assertTrue(pd.isna(df.loc[2, "cars"]))
        self.assertEqual("Int64", str(df["cars"].dtype))

    def test_bad_page_is_skipped_and_reported(self):
        pages = [("data/Avenyn.html", AVENYN), ("data/Broken.html", BROKEN)]
        with self.assertLogs("traffic_flow_maps.core.pipeline", level="WARNING") as logs:
            result = assemble_dataset(pages, {"assembly": {"on_error": "skip"}})
        self.assertEqual(["Avenyn"], result.dataset["street"].unique().tolist())
        self.assertEqual(1, len(result.failures))
        self.assertEqual("data/Broken.html", result.failures[0][0])
        self.assertIn("MissingTableError", result.failures[0][1])
        self.assertTrue(any("data/Broken.html" in line for line in logs.output))

    def test_raise_policy_aborts_the_batch(self):
        pages = [("data/Avenyn.html", AVENYN), ("data/Broken.html", BROKEN)]
        with self.assertRaises(MissingTableError):
            assemble_dataset(pages, {"assembly": {"on_error": "raise"}})

    def test_unknown_policy_is_rejected(self):
        with self.assertRaises(ValueError):
            assemble_dataset([], {"assembly": {"on_error": "ignore"}})

    def test_fill_state_does_not_leak_between_pages(self):
        pages = [("a/Avenyn.html", AVENYN), ("b/Zeta.html", NO_FIRST_STRETCH)]
        result = assemble_dataset(pages)
        self.assertNotIn("Zeta", result.dataset["street"].tolist())
        self.assertEqual("b/Zeta.html", result.failures[0][0])

    def test_worker_pool_gives_same_dataset(self):
        pages = [("data/Avenyn.html", AVENYN), ("data/Gotgatan.html", GOTGATAN), ("data/Broken.html", BROKEN)]
        serial = assemble_dataset(pages, {"assembly": {"workers": 1}})
        parallel = assemble_dataset(pages, {"assembly": {"workers": 3}})
        pd.testing.assert_frame_equal(serial.dataset, parallel.dataset)
        self.assertEqual(serial.failures, parallel.failures)

    def test_no_pages_gives_empty_dataset(self):
        result = assemble_dataset([])
        self.assertTrue(result.dataset.empty)
        self.assertEqual(["street", "from", "to", "year", "cars"], list(result.dataset.columns))


class SummaryTests(unittest.TestCase):
    def test_missing_counts_are_left_out_of_totals(self):
        df = assemble_dataset([("Avenyn.html", AVENYN), ("Gotgatan.html", GOTGATAN)]).dataset
        summary = build_summary(df)
        got = summary[(summary["street"] == "Gotgatan")].iloc[0]
        self.assertEqual(2, got["n_stretches"])
        self.assertEqual(1, got["n_missing_cars"])
        self.assertEqual(8100.0, got["total_cars"])
        total = summary.iloc[-1]
        self.assertEqual("TOTAL", total["street"])
        self.assertEqual(4, total["n_stretches"])
        self.assertEqual(12345.0 + 13000.0 + 8100.0, total["total_cars"])

    def test_map_values_use_latest_year_by_default(self):
        df = assemble_dataset([("Avenyn.html", AVENYN)]).dataset
        self.assertEqual(13000.0, street_values(df)["Avenyn"])
        self.assertEqual(12345.0, street_values(df, year=2015)["Avenyn"])


class GeometryTests(unittest.TestCase):
    def test_named_lines_are_collected_per_street(self):
        data = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {"name": "Avenyn"},
                 "geometry": {"type": "LineString", "coordinates": [[11.97, 57.70], [11.98, 57.69]]}},
                {"type": "Feature", "properties": {"name": "Avenyn"},
                 "geometry": {"type": "MultiLineString",
                              "coordinates": [[[11.98, 57.69], [11.99, 57.69]], [[0, 0], [1, 1]]]}},
                {"type": "Feature", "properties": {"name": "Busshållplats"},
                 "geometry": {"type": "Point", "coordinates": [11.97, 57.70]}},
                {"type": "Feature", "properties": {},
                 "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}},
            ],
        }
        geo = geometry_from_geojson(data)
        self.assertEqual(["Avenyn"], list(geo))
        self.assertEqual(3, len(geo["Avenyn"]))
        self.assertEqual((2, 2), geo["Avenyn"][0].shape)


class RunPipelineTests(unittest.TestCase):
    def test_reports_plots_and_map_are_written(self):
        df = assemble_dataset([("Avenyn.html", AVENYN), ("Gotgatan.html", GOTGATAN)]).dataset
        geojson = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {"name": "Avenyn"},
                 "geometry": {"type": "LineString", "coordinates": [[11.97, 57.70], [11.98, 57.69]]}},
                {"type": "Feature", "properties": {"name": "Vasagatan"},
                 "geometry": {"type": "LineString", "coordinates": [[11.96, 57.70], [11.97, 57.70]]}},
            ],
        }
        cfg = {"reports": {"format": "both", "mat_variable": "streets"},
               "plots": {"streets": True, "map": True}}

        with tempfile.TemporaryDirectory() as tmpdir:
            out_root = Path(tmpdir) / "out"
            geo_path = Path(tmpdir) / "roads.geojson"
            geo_path.write_text(json.dumps(geojson), encoding="utf-8")

            run_pipeline(df, cfg, out_root, geometry=load_geometry(geo_path))

            self.assertTrue((out_root / "street_dataset.csv").exists(), "dataset csv missing")
            self.assertTrue((out_root / "street_dataset.mat").exists(), "dataset mat missing")
            self.assertTrue((out_root / "summary.csv").exists(), "summary csv missing")
            self.assertTrue((out_root / "streets" / "Avenyn.png").exists(), "street plot missing")
            self.assertTrue((out_root / "streets" / "Gotgatan.png").exists(), "street plot missing")
            self.assertTrue((out_root / "traffic_map.png").exists(), "map missing")

            back = pd.read_csv(out_root / "street_dataset.csv")
            self.assertEqual(df["street"].tolist(), back["street"].tolist())
            self.assertEqual(["street", "from", "to", "year", "cars"], list(back.columns))

            mat = loadmat(out_root / "street_dataset.mat")
            cars = mat["streets"]["cars"][0, 0].ravel()
            self.assertEqual(4, cars.size)
            self.assertTrue(np.isnan(cars[2]))

    def test_swedish_street_names_get_their_own_plot_files(self):
        pages = [(f"data/{name}.html", AVENYN) for name in ("Ågatan", "Ägatan", "Ögatan", "Götgatan")]
        df = assemble_dataset(pages).dataset
        with tempfile.TemporaryDirectory() as tmpdir:
            out_root = Path(tmpdir) / "out"
            run_pipeline(df, {"plots": {"streets": True, "map": False}}, out_root)
            written = sorted(p.name for p in (out_root / "streets").glob("*.png"))
            self.assertEqual(sorted(["Ågatan.png", "Ägatan.png", "Ögatan.png", "Götgatan.png"]), written)

    def test_plot_file_stems_are_unique(self):
        stems = plot_file_stems(["Norra Hamngatan", "Norra_Hamngatan", "norra hamngatan", "Avenyn"])
        self.assertEqual("Avenyn", stems["Avenyn"])
        self.assertEqual(4, len({s.casefold() for s in stems.values()}))
        self.assertTrue(all(s.startswith(("Norra_Hamngatan", "norra_hamngatan")) for k, s in stems.items() if k != "Avenyn"))

    def test_map_is_skipped_without_geometry(self):
        df = assemble_dataset([("Avenyn.html", AVENYN)]).dataset
        with tempfile.TemporaryDirectory() as tmpdir:
            out_root = Path(tmpdir) / "out"
            run_pipeline(df, {"plots": {"streets": False}}, out_root)
            self.assertTrue((out_root / "street_dataset.csv").exists())
            self.assertFalse((out_root / "traffic_map.png").exists())
            self.assertFalse((out_root / "streets").exists())


class DiscoveryTests(unittest.TestCase):
    def test_navigation_and_non_html_files_are_excluded(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "Avenyn.html").write_text(AVENYN, encoding="utf-8")
            (root / "Gotgatan.htm").write_text(GOTGATAN, encoding="utf-8")
            (root / "index.html").write_text("<a href='Avenyn.html'>Avenyn</a>", encoding="utf-8")
            (root / "notes.txt").write_text("x", encoding="utf-8")

            found = discover_pages(root, recurse=False)
            self.assertEqual(["Avenyn", "Gotgatan"], [p.path.stem for p in found])

            pages = read_pages(found)
            result = assemble_dataset(pages)
            self.assertEqual({"Avenyn", "Gotgatan"}, set(result.dataset["street"]))


if __name__ == "__main__":
    unittest.main()
