"""
Alert Message Schema
====================

Bounded Context: Alert Record Mirroring

Schema for alert records mirrored to MQTT after a confirmed delivery.
Consumers (dashboards, audit sinks) subscribe to the alert topic.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional
from .common import GeoPoint, Timestamp


ALERT_TYPES = frozenset({"zone_entry", "communication_test", "sos"})


@dataclass(frozen=True)
class AlertMessage:
    """
    One alert record as published on the alert topic.

    Attributes:
        schema_version: Message schema version
        timestamp: Time the message was built
        service_id: Publishing service
        record_id: Alert record identifier
        owner_id: Fisher who was alerted
        vessel_id: MMSI that triggered the alert
        alert_type: zone_entry | communication_test | sos
        position: Position at the time of the alert
        recorded_at: Time the record was written, epoch milliseconds
        details: Free text (zone name for zone_entry)
    """
    schema_version: str
    timestamp: Timestamp
    service_id: str
    record_id: str
    owner_id: str
    vessel_id: str
    alert_type: str
    position: GeoPoint
    recorded_at: int
    details: Optional[str] = None

    def __post_init__(self):
        """Validate invariants."""
        if self.alert_type not in ALERT_TYPES:
            raise ValueError(
                f"alert_type must be one of {sorted(ALERT_TYPES)}, got {self.alert_type!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'service_id': self.service_id,
            'record_id': self.record_id,
            'owner_id': self.owner_id,
            'vessel_id': self.vessel_id,
            'alert_type': self.alert_type,
            'position': self.position.to_dict(),
            'recorded_at': self.recorded_at,
            'details': self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AlertMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=data['timestamp']),
                service_id=str(data['service_id']),
                record_id=str(data['record_id']),
                owner_id=str(data['owner_id']),
                vessel_id=str(data['vessel_id']),
                alert_type=str(data['alert_type']),
                position=GeoPoint.from_dict(data['position']),
                recorded_at=int(data['recorded_at']),
                details=data.get('details')
            )
        except KeyError as e:
            raise ValueError(f"Missing required AlertMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid AlertMessage data: {e}")
