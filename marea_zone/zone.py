"""
Restricted Zone Module
======================

Bounded Context: Restricted maritime zone definitions.

Design:
- SRP: a zone is identity + name + typed geometry, nothing else
- Geometry parsed at construction (from_record), never re-parsed later
- Zones are global: not owned by a vessel or a fisher
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone.geometry.shapes import Geometry, GeometryError, parse_geometry

_logger = create_logger("zones")

_GEOMETRY_KEYS = ("geometry", "geoJsonCoordinates", "geojson", "coordinates", "rings")


@dataclass(frozen=True)
class RestrictedZone:
    """
    Immutable restricted zone.

    Attributes:
        zone_id: Stable identifier
        name: Display name used in alert messages
        geometry: Polygon or MultiPolygon (lon, lat degrees)
        description: Optional free text
    """

    zone_id: str
    name: str
    geometry: Geometry
    description: Optional[str] = None

    def __post_init__(self):
        if not self.zone_id:
            raise ValueError("zone_id cannot be empty")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RestrictedZone":
        """
        Build a zone from a stored zone record.

        Recognised keys: id|_id|zone_id, name, one of geometry /
        geoJsonCoordinates / geojson / coordinates / rings, description.

        Raises:
            GeometryError: If the geometry is missing or malformed
            ValueError: If the identifier is missing
        """
        zone_id = record.get("zone_id") or record.get("id") or record.get("_id")
        if not zone_id:
            raise ValueError("Zone record has no id")

        raw_geometry = next(
            (record[key] for key in _GEOMETRY_KEYS if record.get(key) is not None),
            None
        )
        if raw_geometry is None:
            raise GeometryError(f"Zone '{zone_id}' has no geometry")

        return cls(
            zone_id=str(zone_id),
            name=str(record.get("name") or zone_id),
            geometry=parse_geometry(raw_geometry),
            description=record.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        geometry_type = type(self.geometry).__name__
        return {
            'zone_id': self.zone_id,
            'name': self.name,
            'description': self.description,
            'geometry': {
                'type': geometry_type,
                'coordinates': self.geometry.to_coordinates(),
            },
        }


def load_zones(
    records: Iterable[Mapping[str, Any]],
    logger: Optional[StructuredLogger] = None
) -> List[RestrictedZone]:
    """
    Parse zone records, skipping malformed ones.

    Order of the returned list follows the input order, which is the
    evaluation order used for the tie-break between overlapping zones.
    """
    log = logger or _logger
    zones: List[RestrictedZone] = []

    for record in records:
        try:
            zones.append(RestrictedZone.from_record(record))
        except (GeometryError, ValueError, TypeError, AttributeError) as e:
            log.warning(
                event=LogEvent.ZONE_GEOMETRY_INVALID,
                message="Skipping malformed zone record",
                metadata={'zone_id': _record_id(record)},
                exc_info=e
            )

    return zones


def _record_id(record: Any) -> Optional[str]:
    if isinstance(record, Mapping):
        value = record.get("zone_id") or record.get("id") or record.get("_id")
        return str(value) if value is not None else None
    return None
