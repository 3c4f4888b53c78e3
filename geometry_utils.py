# geometry_utils.py
from __future__ import annotations
import logging
import math
from typing import Dict, Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from shapely.geometry import Polygon, shape
from pyproj import CRS, Transformer

logger = logging.getLogger(__name__)

WGS84 = CRS.from_epsg(4326)

# Shoelace area / squared extent below which a ring counts as collinear.
DEGENERATE_TOLERANCE = 1e-9

PIVOTS = ("planar", "geographic")


class GeometryError(ValueError):
    """Base class for errors raised by the geometry core."""


class InvalidCoordinate(GeometryError):
    pass


class EmptyInput(GeometryError):
    pass


class DegeneratePolygon(GeometryError):
    pass


class InvalidTargetArea(GeometryError):
    pass


class GeoPoint(NamedTuple):
    lon: float
    lat: float


class PlanarPoint(NamedTuple):
    x: float
    y: float


class Zone(NamedTuple):
    number: int
    is_north: bool

    @property
    def epsg(self) -> int:
        # WGS84 / UTM zone N is 326zz, zone S is 327zz
        return (32600 if self.is_north else 32700) + self.number

    @property
    def label(self) -> str:
        return f"{self.number}{'N' if self.is_north else 'S'}"


def _check_finite(values: Iterable[float], what: str) -> None:
    for v in values:
        if not math.isfinite(v):
            raise InvalidCoordinate(f"Non-finite {what}: {tuple(values)}")


# -------------
# Zone selector
# -------------
def select_zone(lon: float, lat: float) -> Zone:
    """Pick the UTM zone and hemisphere containing (lon, lat)."""
    _check_finite((lon, lat), "coordinate")
    number = int(math.floor((lon + 180) / 6)) + 1
    if lon == 180:
        number = 60
    return Zone(number, lat >= 0)


def utm_crs(zone: Zone) -> CRS:
    if not 1 <= zone.number <= 60:
        raise InvalidCoordinate(f"UTM zone out of range: {zone.number}")
    return CRS.from_epsg(zone.epsg)


# --------------------
# Projection transform
# --------------------
def _transformer(zone: Zone, inverse: bool = False) -> Transformer:
    src, dst = WGS84, utm_crs(zone)
    if inverse:
        src, dst = dst, src
    return Transformer.from_crs(src, dst, always_xy=True)


def _apply(transformer: Transformer, points: Iterable[Sequence[float]], what: str) -> List[Tuple[float, float]]:
    out = []
    for p in points:
        a, b = float(p[0]), float(p[1])
        _check_finite((a, b), what)
        res = transformer.transform(a, b)
        _check_finite(res, "projected value")
        out.append(res)
    return out


def project_points(points: Iterable[Sequence[float]], zone: Zone) -> List[PlanarPoint]:
    """Project (lon, lat) pairs into the planar frame of ``zone``."""
    t = _transformer(zone)
    return [PlanarPoint(x, y) for x, y in _apply(t, points, "coordinate")]


def unproject_points(points: Iterable[Sequence[float]], zone: Zone) -> List[GeoPoint]:
    """Map planar (x, y) pairs of ``zone`` back to (lon, lat)."""
    t = _transformer(zone, inverse=True)
    return [GeoPoint(lon, lat) for lon, lat in _apply(t, points, "planar coordinate")]


def to_planar(point: Sequence[float], zone: Zone) -> PlanarPoint:
    return project_points([point], zone)[0]


def to_geographic(point: Sequence[float], zone: Zone) -> GeoPoint:
    return unproject_points([point], zone)[0]


# ----------------
# Polygon geometry
# ----------------
def centroid(points: Sequence[Sequence[float]]) -> Tuple[float, float]:
    """Component-wise mean of the points; index order is kept as given."""
    n = len(points)
    if n == 0:
        raise EmptyInput("Cannot compute the centroid of zero points")
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)


def _shoelace(points: Sequence[Sequence[float]]) -> float:
    total = 0.0
    n = len(points)
    for i in range(n):
        j = (i + 1) % n
        total += points[i][0] * points[j][1] - points[j][0] * points[i][1]
    return total / 2


def signed_area(points: Sequence[Sequence[float]]) -> float:
    """Shoelace area of a closed ring, positive when counter-clockwise.

    The ring is implicitly closed (last vertex joins the first), so callers
    must not repeat the first vertex at the end.
    """
    if len(points) < 3:
        raise DegeneratePolygon(f"A polygon needs at least 3 vertices, got {len(points)}")
    return _shoelace(points)


def polygon_area(points: Sequence[Sequence[float]]) -> float:
    return abs(signed_area(points))


def geographic_area(vertices: Sequence[Sequence[float]], zone: Optional[Zone] = None) -> Tuple[float, Zone]:
    """Planar area (m^2) of lon/lat vertices and the zone it was measured in.

    Without an explicit zone the frame is chosen from the vertices' centroid.
    Collinear or coincident vertices raise ``DegeneratePolygon``: their area
    cannot serve as a reference to rescale to.
    """
    if zone is None:
        zone = select_zone(*centroid(vertices))
    planar = project_points(vertices, zone)
    if len(planar) < 3:
        raise DegeneratePolygon(f"A polygon needs at least 3 vertices, got {len(planar)}")
    if _is_degenerate(vertices) or _is_degenerate(planar):
        raise DegeneratePolygon("Polygon has no area: vertices are collinear or coincident")
    return Polygon(planar).area, zone


def _is_degenerate(points: Sequence[Sequence[float]]) -> bool:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    extent = max(max(xs) - min(xs), max(ys) - min(ys))
    return abs(_shoelace(points)) <= DEGENERATE_TOLERANCE * extent * extent


# ---------------
# Area normalizer
# ---------------
def scale_to_area(
    points: Sequence[Sequence[float]],
    target_area: float,
    pivot: Optional[Sequence[float]] = None,
) -> List[PlanarPoint]:
    """Uniformly scale planar points about ``pivot`` so their area is ``target_area``.

    ``pivot`` defaults to the centroid of the points. Zero-area rings are
    returned unchanged because no scale factor can fix them.
    """
    if not math.isfinite(target_area) or target_area <= 0:
        raise InvalidTargetArea(f"Target area must be positive and finite, got {target_area}")
    current = polygon_area(points)
    if current <= 0 or _is_degenerate(points):
        logger.debug("Degenerate polygon (area %.6g), not scaling", current)
        return [PlanarPoint(p[0], p[1]) for p in points]
    cx, cy = centroid(points) if pivot is None else pivot
    factor = math.sqrt(target_area / current)
    return [PlanarPoint(cx + (x - cx) * factor, cy + (y - cy) * factor) for x, y in points]


def normalize_area(
    vertices: Sequence[Sequence[float]],
    target_area: float,
    zone: Zone,
    pivot: str = "planar",
) -> List[Sequence[float]]:
    """Rescale lon/lat vertices so their planar area in ``zone`` is ``target_area``.

    Shape and vertex order are kept. ``pivot="planar"`` scales about the mean
    of the projected vertices, which leaves the planar centroid fixed.
    ``pivot="geographic"`` scales about the projected lon/lat mean instead;
    that is only a good approximation for polygons much smaller than a zone.

    Collinear or zero-area input is returned as-is: the result is then a
    list of the caller's own vertex objects rather than ``GeoPoint``s.
    """
    if pivot not in PIVOTS:
        raise ValueError(f"Unknown pivot {pivot!r}, expected one of {PIVOTS}")
    if not math.isfinite(target_area) or target_area <= 0:
        raise InvalidTargetArea(f"Target area must be positive and finite, got {target_area}")
    geo_center = centroid(vertices)
    planar = project_points(vertices, zone)
    current = polygon_area(planar)
    if current <= 0 or _is_degenerate(vertices) or _is_degenerate(planar):
        logger.debug("Degenerate polygon (area %.6g m^2), returning input", current)
        return list(vertices)

    center = to_planar(geo_center, zone) if pivot == "geographic" else None
    scaled = scale_to_area(planar, target_area, pivot=center)
    return unproject_points(scaled, zone)


# -------
# GeoJSON
# -------
def ensure_valid_polygon_geometry(geom: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(geom, dict) or "type" not in geom:
        raise ValueError("Invalid geometry: expected GeoJSON geometry object")
    if geom["type"] != "Polygon":
        raise ValueError(f"Unsupported geometry type: {geom['type']}. Use Polygon.")
    # Quick shapely validation
    _ = shape(geom)
    return geom


def geometry_from_geojson(gj: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the polygon geometry out of a FeatureCollection, Feature or bare geometry."""
    if not isinstance(gj, dict):
        raise ValueError("Invalid GeoJSON: expected an object")
    if gj.get("type") == "FeatureCollection":
        if not gj.get("features"):
            raise ValueError("FeatureCollection has no features")
        geom = gj["features"][0].get("geometry")
    elif gj.get("type") == "Feature":
        geom = gj.get("geometry")
    else:
        geom = gj  # assume bare geometry
    return ensure_valid_polygon_geometry(geom)


def polygon_vertices(geom: Dict[str, Any]) -> List[GeoPoint]:
    """Exterior ring of a GeoJSON Polygon without the repeated closing vertex."""
    ring = list(shape(ensure_valid_polygon_geometry(geom)).exterior.coords)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return [GeoPoint(c[0], c[1]) for c in ring]


def vertices_to_geometry(vertices: Sequence[Sequence[float]]) -> Dict[str, Any]:
    ring = [[float(p[0]), float(p[1])] for p in vertices]
    if ring:
        ring.append(list(ring[0]))
    return {"type": "Polygon", "coordinates": [ring]}
