import json

import pytest

import reshape
from geometry_utils import geographic_area, polygon_vertices, vertices_to_geometry

LONDON = [(-0.090, 51.505), (-0.088, 51.505), (-0.088, 51.506), (-0.090, 51.506)]


def _write(tmp_path, gj):
    path = tmp_path / "poly.geojson"
    path.write_text(json.dumps(gj), encoding="utf-8")
    return str(path)


def test_report_only(tmp_path, capsys):
    path = _write(tmp_path, vertices_to_geometry(LONDON))
    assert reshape.main([path]) == 0
    assert capsys.readouterr().out == ""


def test_rescale_to_output_file(tmp_path):
    fc = {
        "type": "FeatureCollection",
        "features": [{"type": "Feature", "properties": {}, "geometry": vertices_to_geometry(LONDON)}],
    }
    path = _write(tmp_path, fc)
    out = tmp_path / "out.geojson"
    assert reshape.main([path, "--target-m2", "50000", "--output", str(out)]) == 0

    geom = json.loads(out.read_text(encoding="utf-8"))
    vertices = polygon_vertices(geom)
    assert len(vertices) == len(LONDON)
    area, zone = geographic_area(vertices)
    assert zone.label == "30N"
    assert area == pytest.approx(50_000, rel=1e-3)


def test_rescale_to_stdout(tmp_path, capsys):
    path = _write(tmp_path, vertices_to_geometry(LONDON))
    assert reshape.main([path, "--target-m2", "1000", "--pivot", "geographic"]) == 0
    geom = json.loads(capsys.readouterr().out)
    assert geom["type"] == "Polygon"
    area, _ = geographic_area(polygon_vertices(geom))
    assert area == pytest.approx(1000, rel=1e-3)


def test_missing_file(tmp_path):
    assert reshape.main([str(tmp_path / "missing.geojson")]) == 1


def test_bad_target(tmp_path):
    path = _write(tmp_path, vertices_to_geometry(LONDON))
    assert reshape.main([path, "--target-m2", "-10"]) == 1


def test_empty_feature_collection(tmp_path):
    path = _write(tmp_path, {"type": "FeatureCollection", "features": []})
    assert reshape.main([path]) == 1
