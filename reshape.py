from __future__ import annotations
import argparse
import json
import logging
import os
import sys

from geometry_utils import (
    PIVOTS,
    geographic_area,
    geometry_from_geojson,
    normalize_area,
    polygon_vertices,
    vertices_to_geometry,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("reshape")


def load_polygon(path: str):
    """Load the first Polygon from a GeoJSON file as lon/lat vertices."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"GeoJSON file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        gj = json.load(f)
    return polygon_vertices(geometry_from_geojson(gj))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Report the UTM area of a GeoJSON polygon and optionally rescale it.",
    )
    parser.add_argument("path", help="GeoJSON file with a Polygon")
    parser.add_argument(
        "--target-m2",
        type=float,
        help="Rescale the polygon about its centroid to this area (m^2)",
    )
    parser.add_argument("--pivot", choices=PIVOTS, default="planar")
    parser.add_argument(
        "--output",
        help="Where to write the rescaled GeoJSON geometry (default: stdout)",
    )
    args = parser.parse_args(argv)

    try:
        vertices = load_polygon(args.path)
        area_m2, zone = geographic_area(vertices)
        logger.info(
            "Area %.2f m^2 (%.4f ha) in UTM zone %s", area_m2, area_m2 / 10_000, zone.label
        )
        if args.target_m2 is None:
            return 0

        adjusted = normalize_area(vertices, args.target_m2, zone, pivot=args.pivot)
        new_area, _ = geographic_area(adjusted, zone)
        logger.info("Rescaled to %.2f m^2", new_area)
        text = json.dumps(vertices_to_geometry(adjusted))
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(text)
        else:
            sys.stdout.write(text + "\n")
    except (OSError, ValueError) as exc:
        logger.error("Reshape failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
