import pytest

from geometry_utils import DegeneratePolygon, Zone, centroid, geographic_area, select_zone
from polygon_record import create_polygon, move_polygon

SQUARE = [(5.990, 45.000), (5.995, 45.000), (5.995, 45.005), (5.990, 45.005)]


def _shift(vertices, dlon, dlat=0.0):
    return [(lon + dlon, lat + dlat) for lon, lat in vertices]


def test_create_polygon_measures_in_centroid_zone():
    record = create_polygon(7, SQUARE)
    assert record.id == 7
    assert record.zone == Zone(31, True)
    area, _ = geographic_area(SQUARE, record.zone)
    assert record.reference_area == pytest.approx(area)
    assert record.area_ha == pytest.approx(record.reference_area / 10_000)
    assert len(record.positions) == 4


def test_move_polygon_restores_reference_area():
    record = create_polygon(1, SQUARE)
    # dragging north stretches the lon/lat box on the ground
    moved = move_polygon(record, _shift(SQUARE, 0.0, 2.0))
    assert moved.reference_area == record.reference_area
    area, _ = geographic_area(moved.positions, moved.zone)
    assert area == pytest.approx(record.reference_area, rel=1e-3)


def test_move_polygon_across_zone_boundary():
    record = create_polygon(1, SQUARE)
    moved = move_polygon(record, _shift(SQUARE, 0.02))
    assert moved.zone == Zone(32, True)
    assert moved.zone == select_zone(*centroid(moved.positions))
    area, _ = geographic_area(moved.positions, moved.zone)
    assert area == pytest.approx(record.reference_area, rel=1e-3)


def test_repeated_moves_keep_area():
    record = create_polygon(1, SQUARE)
    for _ in range(5):
        record = move_polygon(record, _shift(record.positions, 0.5, -3.0))
        area, _ = geographic_area(record.positions, record.zone)
        assert area == pytest.approx(record.reference_area, rel=1e-3)


def test_move_polygon_is_pure():
    record = create_polygon(1, SQUARE)
    move_polygon(record, _shift(SQUARE, 1.0))
    assert list(record.positions) == SQUARE


def test_to_dict():
    data = create_polygon(3, SQUARE).to_dict()
    assert data["id"] == 3
    assert data["coordinates"][0] == [5.990, 45.000]
    assert data["zone"] == {"number": 31, "is_north": True, "label": "31N"}
    assert data["area_ha"] == pytest.approx(data["area_m2"] / 10_000)


@pytest.mark.parametrize(
    "vertices",
    [
        [(2.0, 48.0)] * 3,
        # straight in lon/lat, slightly bowed once projected to UTM
        [(-0.09, 51.50), (-0.08, 51.51), (-0.07, 51.52)],
    ],
)
def test_create_polygon_rejects_zero_area(vertices):
    with pytest.raises(DegeneratePolygon):
        create_polygon(1, vertices)
