"""
Vessel Position Module
======================

Bounded Context: Position reports as seen by the geofencing core.

Design:
- One immutable value per AIS position report
- Parsed once at the boundary (from_dict), typed afterwards
- Timestamps are epoch milliseconds (int), as produced by the ingestion feed
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Tuple


class PositionParseError(ValueError):
    """Raised when a position report is missing fields or has invalid values."""


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    raise PositionParseError(f"Missing required field: {' or '.join(keys)}")


def _parse_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise PositionParseError(f"{field_name} must be numeric, got bool")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise PositionParseError(f"{field_name} must be numeric, got {value!r}") from e
    if not math.isfinite(number):
        raise PositionParseError(f"{field_name} must be finite, got {value!r}")
    return number


def parse_timestamp_ms(value: Any) -> int:
    """
    Normalise a report timestamp to epoch milliseconds.

    Accepts epoch milliseconds (int/float or numeric string), ISO 8601
    strings (a trailing 'Z' is understood) and datetime objects. Naive
    datetimes are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    if isinstance(value, str):
        text = value.strip()
        try:
            float(text)
        except ValueError:
            pass
        else:
            return int(_parse_number(text, "timestamp"))
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise PositionParseError(f"Invalid timestamp: {value!r}") from e
        return parse_timestamp_ms(dt)

    return int(_parse_number(value, "timestamp"))


@dataclass(frozen=True)
class VesselPosition:
    """
    Latest-value position report for one vessel.

    Attributes:
        vessel_id: MMSI as a string
        lat: Latitude in degrees
        lon: Longitude in degrees
        observed_at: Observation time, epoch milliseconds

    Example:
        >>> pos = VesselPosition.from_dict(
        ...     {"mmsi": 123456789, "lat": 36.85, "lon": 3.2, "timestamp": 100}
        ... )
        >>> pos.point
        (3.2, 36.85)
    """

    vessel_id: str
    lat: float
    lon: float
    observed_at: int

    @property
    def point(self) -> Tuple[float, float]:
        """(lon, lat) for geometry queries."""
        return (self.lon, self.lat)

    @property
    def in_range(self) -> bool:
        """True if |lat| <= 90 and |lon| <= 180."""
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        reject_out_of_range: bool = False
    ) -> "VesselPosition":
        """
        Parse a raw report.

        Accepted keys: vessel_id|mmsi, lat|latitude, lon|longitude,
        observed_at|timestamp.

        Args:
            data: Raw report mapping
            reject_out_of_range: Reject |lat| > 90 or |lon| > 180

        Raises:
            PositionParseError: On missing or invalid fields
        """
        if not isinstance(data, Mapping):
            raise PositionParseError(
                f"Position report must be a mapping, got {type(data).__name__}"
            )

        raw_id = _first_present(data, "vessel_id", "mmsi")
        if isinstance(raw_id, float) and raw_id.is_integer():
            raw_id = int(raw_id)
        vessel_id = str(raw_id).strip()
        if not vessel_id:
            raise PositionParseError("vessel_id cannot be empty")

        position = cls(
            vessel_id=vessel_id,
            lat=_parse_number(_first_present(data, "lat", "latitude"), "lat"),
            lon=_parse_number(_first_present(data, "lon", "longitude"), "lon"),
            observed_at=parse_timestamp_ms(_first_present(data, "observed_at", "timestamp")),
        )

        if reject_out_of_range and not position.in_range:
            raise PositionParseError(
                f"Coordinates out of range: lat={position.lat}, lon={position.lon}"
            )

        return position
