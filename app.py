# app.py
from __future__ import annotations
import os
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Any, List

from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    Float,
    Boolean,
    JSON,
    DateTime,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from flask import Flask, jsonify, request
from dotenv import load_dotenv

from geometry_utils import (
    GeoPoint,
    Zone,
    geographic_area,
    geometry_from_geojson,
    polygon_vertices,
)
from polygon_record import PolygonRecord, create_polygon, move_polygon

# Load environment (local dev)
load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("area-keeper")

app = Flask(__name__)

# Configuration
MAX_AREA_KM2 = float(os.getenv("MAX_AREA_KM2", "500"))
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///:memory:")
# Heroku provides URLs starting with ``postgres://`` which is no longer
# recognised by SQLAlchemy. Normalise it to ``postgresql+psycopg2://`` so the
# correct dialect/driver is loaded.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace(
        "postgres://", "postgresql+psycopg2://", 1
    )

_engine: Engine | None = None
_polygons_table: Table | None = None


def _init_db() -> None:
    """Create the engine and the polygons table."""
    global _engine, _polygons_table
    kwargs = {}
    if DATABASE_URL.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if DATABASE_URL.endswith(":memory:"):
            kwargs["poolclass"] = StaticPool
    _engine = create_engine(DATABASE_URL, **kwargs)
    metadata = MetaData()
    _polygons_table = Table(
        "polygons",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("coordinates", JSON, nullable=False),
        Column("reference_area", Float, nullable=False),
        Column("zone_number", Integer, nullable=False),
        Column("is_north", Boolean, nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )
    metadata.create_all(_engine)

_init_db()


def _row_to_record(row) -> PolygonRecord:
    return PolygonRecord(
        id=row.id,
        positions=tuple(GeoPoint(lon, lat) for lon, lat in row.coordinates),
        reference_area=row.reference_area,
        zone=Zone(row.zone_number, bool(row.is_north)),
    )


def _record_values(record: PolygonRecord) -> Dict[str, Any]:
    return {
        "coordinates": [[p.lon, p.lat] for p in record.positions],
        "reference_area": record.reference_area,
        "zone_number": record.zone.number,
        "is_north": record.zone.is_north,
        "updated_at": datetime.now(timezone.utc),
    }


def _fetch_polygon(polygon_id: int) -> PolygonRecord | None:
    with _engine.connect() as conn:
        row = conn.execute(
            select(_polygons_table).where(_polygons_table.c.id == polygon_id)
        ).fetchone()
    return _row_to_record(row) if row is not None else None


def _parse_vertices(payload: Any) -> List[GeoPoint]:
    """Accept ``{"coordinates": [[lon, lat], ...]}`` or a GeoJSON Polygon."""
    if not isinstance(payload, dict):
        raise ValueError("Expected JSON object")
    if "type" not in payload and "coordinates" in payload:
        raw = payload["coordinates"]
        if not isinstance(raw, list):
            raise ValueError("'coordinates' must be a list of [lon, lat] pairs")
        vertices = []
        for item in raw:
            if (
                not isinstance(item, (list, tuple))
                or len(item) < 2
                or not all(
                    isinstance(c, (int, float)) and not isinstance(c, bool)
                    for c in item[:2]
                )
            ):
                raise ValueError(f"Invalid vertex: {item!r}")
            vertices.append(GeoPoint(float(item[0]), float(item[1])))
        return vertices
    # Either full GeoJSON feature/collection or direct 'geometry'
    geom = geometry_from_geojson(payload.get("geometry", payload))
    return polygon_vertices(geom)


def _validate_area(area_m2: float) -> None:
    area_km2 = area_m2 / 1_000_000.0
    if area_km2 > MAX_AREA_KM2:
        raise ValueError(f"Area too large: {area_km2:.1f} km^2 (max {MAX_AREA_KM2} km^2)")


@app.errorhandler(SQLAlchemyError)
def handle_db_error(exc):
    logger.warning("Database error: %s", exc)
    body = {"error": "database query failed"}
    if app.debug:
        body["detail"] = str(exc)
    return jsonify(body), 500


@app.get("/health")
def health():
    return jsonify({"status": "ok", "time": datetime.now(timezone.utc).isoformat()})


@app.post("/area")
def post_area():
    try:
        vertices = _parse_vertices(request.get_json(force=True, silent=True))
        area_m2, zone = geographic_area(vertices)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({
        "area_m2": area_m2,
        "area_ha": area_m2 / 10_000,
        "zone": {"number": zone.number, "is_north": zone.is_north, "label": zone.label},
    })


@app.get("/polygons")
def list_polygons():
    with _engine.connect() as conn:
        rows = conn.execute(
            select(_polygons_table).order_by(_polygons_table.c.id)
        ).fetchall()
    return jsonify({"polygons": [_row_to_record(r).to_dict() for r in rows]})


@app.post("/polygons")
def post_polygon():
    try:
        vertices = _parse_vertices(request.get_json(force=True, silent=True))
        record = create_polygon(0, vertices)
        _validate_area(record.reference_area)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    with _engine.begin() as conn:
        result = conn.execute(_polygons_table.insert().values(**_record_values(record)))
        record = replace(record, id=result.inserted_primary_key[0])
    logger.info(
        "Created polygon %s: %.2f m^2 in UTM %s",
        record.id, record.reference_area, record.zone.label,
    )
    return jsonify(record.to_dict()), 201


@app.get("/polygons/<int:polygon_id>")
def get_polygon(polygon_id: int):
    record = _fetch_polygon(polygon_id)
    if record is None:
        return jsonify({"error": f"Polygon {polygon_id} not found"}), 404
    return jsonify(record.to_dict())


@app.put("/polygons/<int:polygon_id>")
def put_polygon(polygon_id: int):
    record = _fetch_polygon(polygon_id)
    if record is None:
        return jsonify({"error": f"Polygon {polygon_id} not found"}), 404
    try:
        payload = request.get_json(force=True, silent=True)
        vertices = _parse_vertices(payload)
        updated = move_polygon(record, vertices, pivot=payload.get("pivot", "planar"))
    except ValueError as e:
        # Leave the stored polygon in its last valid state
        return jsonify({"error": str(e)}), 400

    values = _record_values(updated)
    with _engine.begin() as conn:
        conn.execute(
            _polygons_table.update()
            .where(_polygons_table.c.id == polygon_id)
            .values(**values)
        )
    logger.info("Moved polygon %s into UTM %s", polygon_id, updated.zone.label)
    return jsonify(updated.to_dict())


@app.delete("/polygons/<int:polygon_id>")
def delete_polygon(polygon_id: int):
    with _engine.begin() as conn:
        result = conn.execute(
            _polygons_table.delete().where(_polygons_table.c.id == polygon_id)
        )
    if result.rowcount == 0:
        return jsonify({"error": f"Polygon {polygon_id} not found"}), 404
    return jsonify({"status": "deleted", "id": polygon_id})


@app.delete("/polygons")
def clear_polygons():
    with _engine.begin() as conn:
        conn.execute(_polygons_table.delete())
    logger.info("Cleared all polygons")
    return jsonify({"status": "cleared"})


if __name__ == "__main__":
    # For local dev only.
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=True)
