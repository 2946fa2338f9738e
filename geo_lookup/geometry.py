# ============================================================================
# CONTEXT - GEOMETRY HELPERS
# ============================================================================
# STATUS: Core - Pure geometry functions
# PURPOSE: Point encoding, great-circle distance and GeoJSON -> MultiPolygon assembly
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: point_wkt, make_point, haversine_km, build_multipolygon, geometry_summary
# DEPENDENCIES: shapely, math
# PATTERNS: Pure functions, collect-and-continue polygon assembly
# ============================================================================

"""
Geometry Helpers

Point order:
    Every point handed to PostGIS is (x, y) = (longitude, latitude), on the
    ingestion (write) path and the containment (read) path alike. point_wkt()
    and make_point() are the only places a point is encoded.

Polygon assembly:
    GeoJSON Polygon / MultiPolygon coordinates are turned into one shapely
    MultiPolygon per feature. A polygon whose outer ring cannot be built is
    skipped; a hole that cannot be built is dropped; a polygon that fails with
    its holes is retried without them. An outer ring of exactly two coordinate
    pairs is widened into the axis-aligned rectangle they span (lossy).
"""

import logging
import math
from typing import Any, Dict, List, Optional

from shapely.errors import ShapelyError
from shapely.geometry import LinearRing, MultiPolygon, Point, Polygon, box

from .errors import GeometryConstructionError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Exceptions that mean "these coordinates do not form a ring/polygon"
_CONSTRUCTION_ERRORS = (ShapelyError, ValueError, TypeError, IndexError)


# ============================================================================
# POINTS AND DISTANCE
# ============================================================================

def point_wkt(latitude: float, longitude: float) -> str:
    """WKT for a point, longitude first."""
    return f"POINT({float(longitude)} {float(latitude)})"


def make_point(latitude: float, longitude: float) -> Point:
    return Point(float(longitude), float(latitude))


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


# ============================================================================
# POLYGON ASSEMBLY
# ============================================================================

def _is_nonempty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def _is_two_point_ring(ring: List[Any]) -> bool:
    return len(ring) == 2 and all(isinstance(pt, list) and len(pt) == 2 for pt in ring)


def _linear_ring(ring: List[Any]) -> LinearRing:
    return LinearRing([(float(pt[0]), float(pt[1])) for pt in ring])


def _outer_ring(ring: List[Any], name: Optional[str]):
    if _is_two_point_ring(ring):
        (lng1, lat1), (lng2, lat2) = ring
        logger.warning(f"⚠️ Constructing rectangular fallback for {name!r} (2 points)")
        rect = box(min(float(lng1), float(lng2)), min(float(lat1), float(lat2)),
                   max(float(lng1), float(lng2)), max(float(lat1), float(lat2)))
        return rect.exterior
    return _linear_ring(ring)


def _build_polygon(poly_coords: Any, index: int, name: Optional[str],
                   debug_info: List[str]) -> Optional[Polygon]:
    if not _is_nonempty_list(poly_coords):
        debug_info.append(f"poly_coords[{index}] is {type(poly_coords).__name__}: {repr(poly_coords)[:200]}")
        return None

    raw_ring = poly_coords[0]
    if not _is_nonempty_list(raw_ring):
        debug_info.append(f"poly_coords[{index}] outer ring is {type(raw_ring).__name__}: {repr(raw_ring)[:200]}")
        return None

    try:
        outer = _outer_ring(raw_ring, name)
    except _CONSTRUCTION_ERRORS as e:
        debug_info.append(f"poly_coords[{index}] outer ring failed: {type(e).__name__}: {e}")
        return None

    holes = []
    for hole_index, ring in enumerate(poly_coords[1:]):
        if not _is_nonempty_list(ring):
            debug_info.append(f"hole[{hole_index}] is {type(ring).__name__}: {repr(ring)[:100]}")
            continue
        try:
            holes.append(_linear_ring(ring))
        except _CONSTRUCTION_ERRORS as e:
            debug_info.append(f"hole[{hole_index}] dropped: {type(e).__name__}: {e}")

    try:
        return Polygon(outer, holes)
    except _CONSTRUCTION_ERRORS as e:
        debug_info.append(f"polygon[{index}] failed with {len(holes)} holes: {type(e).__name__}: {e}")

    try:
        return Polygon(outer)
    except _CONSTRUCTION_ERRORS as e:
        debug_info.append(f"polygon[{index}] failed without holes: {type(e).__name__}: {e}")
        return None


def build_multipolygon(geometry: Dict[str, Any], name: Optional[str] = None) -> MultiPolygon:
    """
    Assemble a GeoJSON Polygon/MultiPolygon geometry into a MultiPolygon.

    Args:
        geometry: GeoJSON geometry dict ({"type": ..., "coordinates": ...})
        name: Feature name, for log messages

    Returns:
        MultiPolygon of every polygon that could be built

    Raises:
        GeometryConstructionError: unsupported type or no buildable polygon
    """
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    if geom_type == "Polygon":
        polygon_groups = [coords]
    elif geom_type == "MultiPolygon":
        polygon_groups = coords
    else:
        raise GeometryConstructionError(
            f"Unsupported geometry type: {geom_type}",
            details=geometry_summary(geometry)
        )

    if not _is_nonempty_list(polygon_groups):
        raise GeometryConstructionError(
            "Geometry has no coordinates",
            details=geometry_summary(geometry)
        )

    debug_info: List[str] = []
    polygons = []
    for index, poly_coords in enumerate(polygon_groups):
        polygon = _build_polygon(poly_coords, index, name, debug_info)
        if polygon is not None:
            polygons.append(polygon)

    if not polygons:
        details = geometry_summary(geometry)
        details["debug"] = debug_info
        raise GeometryConstructionError("No valid polygons found", details=details)

    if debug_info:
        logger.debug(f"Partial geometry for {name!r}: {'; '.join(debug_info)}")

    return MultiPolygon(polygons)


def geometry_summary(geometry: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Shape of a raw GeoJSON geometry, for error records."""
    if not isinstance(geometry, dict):
        return {"geometry_type": None, "coordinates_class": type(geometry).__name__, "coordinates_size": None}

    coords = geometry.get("coordinates")
    summary = {
        "geometry_type": geometry.get("type"),
        "coordinates_class": type(coords).__name__,
        "coordinates_size": len(coords) if isinstance(coords, (list, tuple)) else None,
    }
    if _is_nonempty_list(coords):
        first = coords[0]
        inner = first[0] if _is_nonempty_list(first) else None
        summary["structure"] = f"{type(coords).__name__} -> {type(first).__name__} -> {type(inner).__name__}"
    return summary
