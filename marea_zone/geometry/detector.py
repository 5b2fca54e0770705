"""
Zone Detector Module
====================

Stateless membership logic - applies zone geometry to vessel positions.

Design:
- Pure functions (no state), all methods static
- Crossing-number ray casting, vectorised over ring edges with numpy
- One bad zone never hides a valid one: evaluation errors skip the zone
- Thread-safe (no mutations)

Known boundary ambiguity:
    Points lying exactly on an edge or a vertex may be reported inside or
    outside. Ray casting is not exact on boundaries and this is accepted.
"""

from typing import Iterable, Optional, Sequence

import numpy as np

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone.geometry.shapes import (
    Geometry,
    GeometryError,
    MultiPolygon,
    Point,
    Polygon,
    Ring,
)

_logger = create_logger("geometry")


class ZoneDetector:
    """
    Stateless detector for point-in-zone queries.

    Design Philosophy:
    - All methods are static (no instance state)
    - Points are (lon, lat); lon is the ray's x axis
    - Degenerate input answers False instead of raising
    """

    @staticmethod
    def point_in_ring(point: Point, ring: Ring | Sequence[Sequence[float]]) -> bool:
        """
        Crossing-number test: cast a ray towards +x and count edge crossings.

        Args:
            point: (lon, lat) to test
            ring: Ring, or raw [[lon, lat], ...] coordinates (closed or not)

        Returns:
            True if the number of crossings is odd. Rings with fewer than
            3 vertices contain nothing.

        Raises:
            GeometryError: If raw coordinates are not numeric pairs
        """
        if not isinstance(ring, Ring):
            ring = Ring.from_coordinates(ring)
        if ring.is_degenerate:
            return False

        x, y = float(point[0]), float(point[1])
        xi = ring.vertices[:, 0]
        yi = ring.vertices[:, 1]
        xj = np.roll(xi, 1)
        yj = np.roll(yi, 1)

        # Edge straddles the horizontal line through the point
        straddles = (yi > y) != (yj > y)

        # Horizontal edges give inf/nan here, but never straddle
        with np.errstate(divide='ignore', invalid='ignore'):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi

        crossings = np.count_nonzero(straddles & (x < x_cross))
        return bool(crossings % 2 == 1)

    @staticmethod
    def point_in_polygon(point: Point, polygon: Polygon) -> bool:
        """Inside the outer ring and inside none of the holes."""
        if not ZoneDetector.point_in_ring(point, polygon.outer):
            return False
        return not any(ZoneDetector.point_in_ring(point, hole) for hole in polygon.holes)

    @staticmethod
    def point_in_multipolygon(point: Point, multipolygon: MultiPolygon) -> bool:
        """Inside any constituent polygon."""
        return any(
            ZoneDetector.point_in_polygon(point, polygon)
            for polygon in multipolygon.polygons
        )

    @staticmethod
    def contains(geometry: Geometry, point: Point) -> bool:
        """
        Dispatch on geometry type.

        Raises:
            GeometryError: If geometry is not a Polygon or MultiPolygon
        """
        if isinstance(geometry, Polygon):
            return ZoneDetector.point_in_polygon(point, geometry)
        if isinstance(geometry, MultiPolygon):
            return ZoneDetector.point_in_multipolygon(point, geometry)
        raise GeometryError(f"Unsupported geometry: {type(geometry).__name__}")

    @staticmethod
    def point_in_any_zone(
        point: Point,
        zones: Iterable,
        logger: Optional[StructuredLogger] = None
    ) -> Optional[str]:
        """
        Find the first zone containing the point.

        Zones are evaluated in the order supplied; that order is the
        tie-break when zones overlap. A zone whose geometry fails to
        evaluate is logged and skipped.

        Args:
            point: (lon, lat) to test
            zones: Iterable of objects exposing zone_id and geometry
            logger: Structured logger (default: module logger)

        Returns:
            zone_id of the first containing zone, or None
        """
        log = logger or _logger

        for zone in zones:
            try:
                if ZoneDetector.contains(zone.geometry, point):
                    return zone.zone_id
            except (GeometryError, AttributeError, TypeError, ValueError, IndexError) as e:
                log.warning(
                    event=LogEvent.ZONE_GEOMETRY_INVALID,
                    message="Skipping zone that failed point-in-polygon evaluation",
                    metadata={'zone_id': getattr(zone, 'zone_id', None)},
                    exc_info=e
                )

        return None
