"""
Geometric Shapes Module
========================

Pure geometric representations - NO state, NO side effects.

Design:
- Immutable shapes (frozen dataclass pattern)
- Rings stored as read-only Nx2 numpy arrays of (lon, lat)
- GeoJSON parsed ONCE at the boundary (parse_geometry), never mid-algorithm
- Thread-safe by design (immutability)

Coordinates are WGS84 degrees taken as planar (lon = x, lat = y). There is no
dateline or polar handling: zones are expected to stay within a regional area
where longitude differences are under 180 degrees.
"""

import json
from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union

import numpy as np

Point = Tuple[float, float]
"""(lon, lat) pair in degrees."""


class GeometryError(ValueError):
    """Raised when zone geometry is malformed."""


def _as_vertices(coordinates: Any) -> np.ndarray:
    """Convert a coordinate sequence into a read-only float Nx2 array."""
    try:
        vertices = np.array(coordinates, dtype=float)
    except (TypeError, ValueError) as e:
        raise GeometryError(f"Ring coordinates must be numeric: {e}") from e

    if vertices.size == 0:
        vertices = vertices.reshape(0, 2)
    if vertices.ndim != 2 or vertices.shape[1] != 2:
        raise GeometryError(
            f"Ring must be a sequence of [lon, lat] pairs, got shape {vertices.shape}"
        )
    if not np.all(np.isfinite(vertices)):
        raise GeometryError("Ring coordinates must be finite numbers")

    vertices.flags.writeable = False
    return vertices


@dataclass(frozen=True, eq=False)
class Ring:
    """
    Immutable closed ring of (lon, lat) vertices.

    The ring is implicitly closed: the closing vertex may or may not repeat
    the first one. Rings with fewer than 3 vertices are accepted and treated
    as degenerate (they contain nothing).

    Attributes:
        vertices: Nx2 array of (lon, lat) vertices
    """

    vertices: np.ndarray

    def __post_init__(self):
        """Normalize vertices to a read-only float array."""
        if not isinstance(self.vertices, np.ndarray) or self.vertices.flags.writeable:
            object.__setattr__(self, 'vertices', _as_vertices(self.vertices))

    @classmethod
    def from_coordinates(cls, coordinates: Sequence[Sequence[float]]) -> "Ring":
        return cls(vertices=_as_vertices(coordinates))

    @property
    def is_degenerate(self) -> bool:
        return len(self.vertices) < 3

    def to_coordinates(self) -> list:
        return self.vertices.tolist()


@dataclass(frozen=True)
class Polygon:
    """
    Outer ring plus zero or more hole rings.

    Attributes:
        outer: Boundary ring
        holes: Interior rings subtracted from the outer ring
    """

    outer: Ring
    holes: Tuple[Ring, ...] = ()

    def __post_init__(self):
        if not isinstance(self.holes, tuple):
            object.__setattr__(self, 'holes', tuple(self.holes))

    @classmethod
    def from_coordinates(cls, rings: Sequence[Sequence[Sequence[float]]]) -> "Polygon":
        """Build from GeoJSON Polygon coordinates: [outer, hole1, hole2, ...]."""
        if not isinstance(rings, (list, tuple)) or len(rings) == 0:
            raise GeometryError("Polygon needs at least an outer ring")
        parsed = [Ring.from_coordinates(ring) for ring in rings]
        return cls(outer=parsed[0], holes=tuple(parsed[1:]))

    def to_coordinates(self) -> list:
        return [self.outer.to_coordinates()] + [h.to_coordinates() for h in self.holes]


@dataclass(frozen=True)
class MultiPolygon:
    """
    Union of polygons. Holes only subtract from their own polygon.

    Attributes:
        polygons: Constituent polygons
    """

    polygons: Tuple[Polygon, ...]

    def __post_init__(self):
        if not isinstance(self.polygons, tuple):
            object.__setattr__(self, 'polygons', tuple(self.polygons))
        if len(self.polygons) == 0:
            raise GeometryError("MultiPolygon needs at least one polygon")

    @classmethod
    def from_coordinates(cls, polygons: Sequence) -> "MultiPolygon":
        if not isinstance(polygons, (list, tuple)) or len(polygons) == 0:
            raise GeometryError("MultiPolygon needs at least one polygon")
        return cls(polygons=tuple(Polygon.from_coordinates(p) for p in polygons))

    def to_coordinates(self) -> list:
        return [p.to_coordinates() for p in self.polygons]


Geometry = Union[Polygon, MultiPolygon]


def _nesting_depth(value: Any) -> int:
    """Depth of list nesting down to the first scalar (a [lon, lat] pair is 1)."""
    depth = 0
    while isinstance(value, (list, tuple)):
        if len(value) == 0:
            return depth + 1
        depth += 1
        value = value[0]
    return depth


def parse_geometry(value: Any) -> Geometry:
    """
    Parse zone geometry at the boundary into a typed Polygon/MultiPolygon.

    Accepted inputs:
        - GeoJSON geometry mapping: {"type": "Polygon"|"MultiPolygon", "coordinates": ...}
        - Raw GeoJSON coordinates: depth 3 -> Polygon (with optional holes),
          depth 4 -> MultiPolygon
        - A JSON string holding either of the above
        - An already-parsed Polygon or MultiPolygon (returned as-is)

    Raises:
        GeometryError: If the value cannot be interpreted as polygon geometry

    Example:
        >>> zone = parse_geometry("[[[3.0,36.7],[3.5,36.7],[3.5,37.0],[3.0,37.0]]]")
        >>> isinstance(zone, Polygon)
        True
    """
    if isinstance(value, (Polygon, MultiPolygon)):
        return value

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise GeometryError(f"Invalid GeoJSON coordinates format: {e}") from e

    if isinstance(value, dict):
        geometry_type = value.get("type")
        coordinates = value.get("coordinates")
        if geometry_type == "Polygon":
            return Polygon.from_coordinates(coordinates)
        if geometry_type == "MultiPolygon":
            return MultiPolygon.from_coordinates(coordinates)
        raise GeometryError(f"Unsupported geometry type: {geometry_type!r}")

    if not isinstance(value, (list, tuple)):
        raise GeometryError(
            f"GeoJSON coordinates should be an array, got {type(value).__name__}"
        )

    depth = _nesting_depth(value)
    if depth == 3:
        return Polygon.from_coordinates(value)
    if depth == 4:
        return MultiPolygon.from_coordinates(value)
    raise GeometryError(
        f"Coordinates nesting depth {depth} is neither Polygon (3) nor MultiPolygon (4)"
    )
