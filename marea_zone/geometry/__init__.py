"""
Geometry Layer
==============

Bounded Context: Pure geometric shapes and spatial queries.

Responsibilities:
- Shape representation (immutable Ring / Polygon / MultiPolygon)
- GeoJSON parsing at the boundary
- Point-in-polygon tests (ray casting, holes, multi-polygon union)
- NO state, NO tracking, NO alerting

Design Philosophy:
- Pure functions where possible
- Immutable data structures
- Bad geometry is skipped, never fatal to the rest of the zones
"""

from marea_zone.geometry.shapes import (
    Geometry,
    GeometryError,
    MultiPolygon,
    Point,
    Polygon,
    Ring,
    parse_geometry,
)
from marea_zone.geometry.detector import ZoneDetector

__all__ = [
    "Geometry",
    "GeometryError",
    "MultiPolygon",
    "Point",
    "Polygon",
    "Ring",
    "parse_geometry",
    "ZoneDetector",
]
