"""
Marea Zone v1.0
===============

Bounded Context: Restricted-zone geofencing for AIS vessel positions.

Design Philosophy:
- Separation of Concerns: Geometry, membership tracking, zone records separated
- Geometry is immutable and stateless, tracking owns all mutable state
- A malformed zone is skipped, the remaining zones are still evaluated

Architecture:

    marea_zone/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── shapes.py      # Ring, Polygon, MultiPolygon, parse_geometry
    │   └── detector.py    # ZoneDetector (ray casting, zone lookup)
    │
    ├── analytics/         # Membership tracking (stateful)
    │   ├── transitions.py # MembershipState, ZoneTransition
    │   └── tracker.py     # ZoneTransitionTracker (edge-triggered)
    │
    ├── zone.py            # RestrictedZone, load_zones
    └── vessel.py          # VesselPosition, timestamp parsing

Usage:

    # 1. Load zones (malformed records are skipped)
    from marea_zone import load_zones, VesselPosition, ZoneTransitionTracker

    zones = load_zones([
        {"id": "coastal-buffer", "name": "Coastal Buffer",
         "geoJsonCoordinates": "[[[3.0,36.7],[3.4,36.7],[3.4,36.9],[3.0,36.9],[3.0,36.7]]]"}
    ])

    # 2. Check a point (stateless)
    from marea_zone import ZoneDetector
    zone_id = ZoneDetector.point_in_any_zone((3.2, 36.8), zones)

    # 3. Track transitions (stateful)
    tracker = ZoneTransitionTracker()
    position = VesselPosition.from_dict(
        {"mmsi": "123456789", "lat": 36.8, "lon": 3.2, "timestamp": 1000}
    )
    for transition in tracker.update(position, zones):
        print(transition)
"""

# Geometry Layer (immutable, stateless)
from marea_zone.geometry.shapes import (
    Geometry,
    GeometryError,
    MultiPolygon,
    Polygon,
    Ring,
    parse_geometry,
)
from marea_zone.geometry.detector import ZoneDetector

# Domain values
from marea_zone.vessel import PositionParseError, VesselPosition, parse_timestamp_ms
from marea_zone.zone import RestrictedZone, load_zones

# Analytics Layer (stateful)
from marea_zone.analytics.transitions import (
    MembershipState,
    TransitionKind,
    ZoneTransition,
)
from marea_zone.analytics.tracker import ZoneTransitionTracker, evaluate

__all__ = [
    # Geometry
    "Geometry",
    "GeometryError",
    "MultiPolygon",
    "Polygon",
    "Ring",
    "parse_geometry",
    "ZoneDetector",
    # Domain
    "PositionParseError",
    "VesselPosition",
    "parse_timestamp_ms",
    "RestrictedZone",
    "load_zones",
    # Analytics
    "MembershipState",
    "TransitionKind",
    "ZoneTransition",
    "ZoneTransitionTracker",
    "evaluate",
]

__version__ = "1.0.0"
