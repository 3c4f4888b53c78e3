# polygon_record.py
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, Any, Sequence, Tuple

from geometry_utils import (
    GeoPoint,
    Zone,
    centroid,
    geographic_area,
    normalize_area,
    select_zone,
)


@dataclass(frozen=True)
class PolygonRecord:
    """Caller-owned state of one drawn polygon.

    ``reference_area`` is measured once when the polygon is created and every
    later edit is rescaled back to it. ``zone`` is the UTM frame of the most
    recent measurement.
    """
    id: int
    positions: Tuple[GeoPoint, ...]
    reference_area: float  # m^2
    zone: Zone

    @property
    def area_ha(self) -> float:
        return self.reference_area / 10_000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "coordinates": [[p.lon, p.lat] for p in self.positions],
            "area_m2": self.reference_area,
            "area_ha": self.area_ha,
            "zone": {
                "number": self.zone.number,
                "is_north": self.zone.is_north,
                "label": self.zone.label,
            },
        }


def _as_points(vertices: Sequence[Sequence[float]]) -> Tuple[GeoPoint, ...]:
    return tuple(GeoPoint(float(v[0]), float(v[1])) for v in vertices)


def create_polygon(polygon_id: int, vertices: Sequence[Sequence[float]]) -> PolygonRecord:
    """Measure a freshly drawn polygon in the zone of its centroid."""
    positions = _as_points(vertices)
    area, zone = geographic_area(positions)
    return PolygonRecord(polygon_id, positions, area, zone)


def move_polygon(
    record: PolygonRecord,
    vertices: Sequence[Sequence[float]],
    pivot: str = "planar",
) -> PolygonRecord:
    """Apply an edit (e.g. the end of a drag) and restore the reference area.

    The frame is re-selected from the edited centroid, so a polygon dragged
    across a zone boundary is measured in its new zone.
    """
    positions = _as_points(vertices)
    zone = select_zone(*centroid(positions))
    adjusted = normalize_area(positions, record.reference_area, zone, pivot=pivot)
    return replace(record, positions=_as_points(adjusted), zone=zone)
