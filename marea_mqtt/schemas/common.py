"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

This module defines common types used across zone transition, alert and
position messages.

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Type Safety: All fields explicitly typed
- Serialization: to_dict() for JSON export
- Validation: Constructor validates invariants

Types:
- GeoPoint: WGS84 latitude / longitude pair
- Timestamp: ISO 8601 timestamp wrapper (UTC)
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any


@dataclass(frozen=True)
class GeoPoint:
    """
    Immutable WGS84 position.

    Attributes:
        lat: Latitude in degrees
        lon: Longitude in degrees

    Invariants:
        - -90 <= lat <= 90
        - -180 <= lon <= 180

    Example:
        >>> point = GeoPoint(lat=36.8, lon=3.2)
        >>> point.to_dict()
        {'lat': 36.8, 'lon': 3.2}
    """
    lat: float
    lon: float

    def __post_init__(self):
        """Validate invariants."""
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude must be within [-90, 90], got {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude must be within [-180, 180], got {self.lon}")

    def to_dict(self) -> Dict[str, float]:
        """Serialize to JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeoPoint':
        """Deserialize from dict.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            return cls(lat=float(data['lat']), lon=float(data['lon']))
        except KeyError as e:
            raise ValueError(f"Missing required GeoPoint field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid GeoPoint data: {e}")


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string (UTC offset included)

    Example:
        >>> Timestamp.from_epoch_ms(0).value
        '1970-01-01T00:00:00+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object (naive is taken as UTC)."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return cls(value=dt.isoformat())

    @classmethod
    def from_epoch_ms(cls, epoch_ms: int) -> 'Timestamp':
        """Create timestamp from epoch milliseconds."""
        return cls.from_datetime(datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc))

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_epoch_ms(self) -> int:
        dt = self.to_datetime()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
