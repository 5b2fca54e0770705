"""
Zone Transition Types
=====================

Immutable values produced and consumed by the transition tracker.

Design:
- Frozen dataclasses (value objects, thread-safe reads)
- A vessel is inside at most one zone at a time
- Serializable via to_dict() for MQTT mirroring
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from marea_zone.vessel import VesselPosition


class TransitionKind(str, Enum):
    """Direction of a membership change."""
    ENTRY = "entry"
    EXIT = "exit"


@dataclass(frozen=True)
class MembershipState:
    """
    Last known zone membership of one vessel.

    Attributes:
        vessel_id: MMSI
        currently_inside: zone_id, or None when outside every zone
        observed_at: Timestamp (epoch ms) of the report that produced this state
    """

    vessel_id: str
    currently_inside: Optional[str] = None
    observed_at: Optional[int] = None

    @property
    def is_inside(self) -> bool:
        return self.currently_inside is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vessel_id': self.vessel_id,
            'currently_inside': self.currently_inside,
            'observed_at': self.observed_at,
        }


@dataclass(frozen=True)
class ZoneTransition:
    """
    Entry into or exit from a restricted zone.

    Attributes:
        kind: ENTRY or EXIT
        vessel_id: MMSI
        zone_id: Zone entered or left
        position: Report that triggered the transition
        zone_name: Display name (None if the zone is no longer defined)
    """

    kind: TransitionKind
    vessel_id: str
    zone_id: str
    position: VesselPosition
    zone_name: Optional[str] = None

    @property
    def observed_at(self) -> int:
        return self.position.observed_at

    @property
    def is_entry(self) -> bool:
        return self.kind == TransitionKind.ENTRY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'vessel_id': self.vessel_id,
            'zone_id': self.zone_id,
            'zone_name': self.zone_name,
            'lat': self.position.lat,
            'lon': self.position.lon,
            'observed_at': self.observed_at,
        }

    def __str__(self) -> str:
        return f"{self.kind.value.upper()} {self.vessel_id} -> {self.zone_id}"
