"""
Zone Transition Message Schema
==============================

Bounded Context: Zone Transition Data Structures

This module defines the schema for zone entry / exit transitions published
via MQTT.

Design:
- TransitionEvent: One vessel entering or leaving one zone
- ZoneTransitionMessage: All transitions produced by one processed batch

Message Flow:
    ZoneTransitionTracker → TransitionEvent → ZoneTransitionPublisher → MQTT
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional
from .common import GeoPoint, Timestamp


class TransitionType(str, Enum):
    """Transition direction."""
    ENTRY = "entry"
    EXIT = "exit"


@dataclass(frozen=True)
class TransitionEvent:
    """
    Single zone transition.

    Attributes:
        vessel_id: MMSI of the vessel
        zone_id: Zone entered or left
        transition_type: ENTRY or EXIT
        position: Position that triggered the transition
        observed_at: Report time, epoch milliseconds
        zone_name: Display name of the zone (optional)

    Example:
        >>> event = TransitionEvent(
        ...     vessel_id="123456789",
        ...     zone_id="coastal-buffer",
        ...     transition_type=TransitionType.ENTRY,
        ...     position=GeoPoint(lat=36.8, lon=3.2),
        ...     observed_at=1700000000000,
        ...     zone_name="Coastal Buffer"
        ... )
    """
    vessel_id: str
    zone_id: str
    transition_type: TransitionType
    position: GeoPoint
    observed_at: int
    zone_name: Optional[str] = None

    def __post_init__(self):
        """Validate invariants."""
        if not self.vessel_id:
            raise ValueError("vessel_id cannot be empty")
        if not self.zone_id:
            raise ValueError("zone_id cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'vessel_id': self.vessel_id,
            'zone_id': self.zone_id,
            'zone_name': self.zone_name,
            'transition_type': self.transition_type.value,
            'position': self.position.to_dict(),
            'observed_at': self.observed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitionEvent':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                vessel_id=str(data['vessel_id']),
                zone_id=str(data['zone_id']),
                transition_type=TransitionType(data['transition_type']),
                position=GeoPoint.from_dict(data['position']),
                observed_at=int(data['observed_at']),
                zone_name=data.get('zone_name')
            )
        except KeyError as e:
            raise ValueError(f"Missing required TransitionEvent field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid TransitionEvent data: {e}")

    @property
    def is_entry(self) -> bool:
        return self.transition_type == TransitionType.ENTRY


@dataclass(frozen=True)
class ZoneTransitionMessage:
    """
    Complete zone transition message for MQTT publication.

    Attributes:
        schema_version: Message schema version (for evolution)
        timestamp: ISO 8601 timestamp of message creation
        service_id: Identifier of the publishing geofence service
        transitions: Transitions in the order they were produced

    Example:
        >>> msg = ZoneTransitionMessage(
        ...     schema_version="1.0",
        ...     timestamp=Timestamp.now(),
        ...     service_id="geofence-dz",
        ...     transitions=[event]
        ... )
    """
    schema_version: str
    timestamp: Timestamp
    service_id: str
    transitions: List[TransitionEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'service_id': self.service_id,
            'transitions': [t.to_dict() for t in self.transitions]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ZoneTransitionMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=data['timestamp']),
                service_id=str(data['service_id']),
                transitions=[
                    TransitionEvent.from_dict(t)
                    for t in data.get('transitions', [])
                ]
            )
        except KeyError as e:
            raise ValueError(f"Missing required ZoneTransitionMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ZoneTransitionMessage data: {e}")

    @property
    def transition_count(self) -> int:
        """Number of transitions in this message."""
        return len(self.transitions)

    def get_transitions_for_vessel(self, vessel_id: str) -> List[TransitionEvent]:
        """Transitions of one vessel, in order."""
        return [t for t in self.transitions if t.vessel_id == vessel_id]

    def get_entries(self) -> List[TransitionEvent]:
        return [t for t in self.transitions if t.is_entry]
