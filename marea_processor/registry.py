"""
Zone Registry - Thread-safe restricted zone management.

This module provides the ZoneRegistry class which manages the collection of
restricted zones in a thread-safe manner. It supports hot-reconfiguration
(add/update/remove, or a full refresh between batches).

Thread Safety:
- Uses threading.Lock for protecting zone dict mutations
- Snapshot pattern: snapshot() copies the enabled zones so a batch is
  evaluated against one consistent zone set
- RestrictedZone objects are immutable (frozen dataclass)

Evaluation order is insertion order. When zones overlap, the first zone
registered wins (documented tie-break). update_zone keeps a zone's place.
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone import RestrictedZone, load_zones, parse_geometry


@dataclass
class ManagedZone:
    """Zone plus its enabled flag."""

    zone: RestrictedZone
    enabled: bool = True

    @property
    def zone_id(self) -> str:
        return self.zone.zone_id


class ZoneRegistry:
    """
    Thread-safe registry of restricted zones.

    Thread Safety Guarantees:
    - add_zone(), remove_zone(), update_zone(), replace_all(): write (lock)
    - enable_zone(), disable_zone(): write (lock)
    - snapshot(): read with copy (lock held briefly)
    - list_zones(), get_zone_info(), count(): read (lock held briefly)

    Usage:
        registry = ZoneRegistry()
        registry.add_zone({"id": "coastal-buffer", "name": "Coastal Buffer",
                           "geoJsonCoordinates": "[[[3.0,36.7],...]]"})
        zones = registry.snapshot()
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        """Initialize empty registry."""
        self._managed_zones: Dict[str, ManagedZone] = {}
        self._lock = threading.Lock()
        self.logger = logger or create_logger("registry")

    def add_zone(
        self,
        zone: RestrictedZone | Mapping[str, Any],
        enabled: bool = True
    ) -> RestrictedZone:
        """
        Add a zone to the registry.

        Args:
            zone: RestrictedZone or zone record (parsed here)
            enabled: Initial enabled flag

        Raises:
            GeometryError: If the record geometry is malformed
            ValueError: If zone_id already exists

        Thread-safe: Acquires lock for write operation.
        """
        if not isinstance(zone, RestrictedZone):
            zone = RestrictedZone.from_record(zone)

        with self._lock:
            if zone.zone_id in self._managed_zones:
                raise ValueError(f"Zone '{zone.zone_id}' already exists")
            self._managed_zones[zone.zone_id] = ManagedZone(zone=zone, enabled=enabled)

        self._log_update("added", zone.zone_id)
        return zone

    def update_zone(
        self,
        zone_id: str,
        name: Optional[str] = None,
        geometry: Any = None,
        description: Optional[str] = None
    ) -> RestrictedZone:
        """
        Partially update an existing zone (keeps enabled flag and order).

        Raises:
            KeyError: If zone_id does not exist
            GeometryError: If geometry is malformed

        Thread-safe: Acquires lock for write operation.
        """
        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if geometry is not None:
            changes["geometry"] = parse_geometry(geometry)
        if description is not None:
            changes["description"] = description

        with self._lock:
            if zone_id not in self._managed_zones:
                raise KeyError(f"Zone '{zone_id}' not found")
            managed = self._managed_zones[zone_id]
            managed.zone = replace(managed.zone, **changes)
            updated = managed.zone

        self._log_update("updated", zone_id)
        return updated

    def remove_zone(self, zone_id: str) -> None:
        """
        Remove a zone from the registry.

        Raises:
            KeyError: If zone_id does not exist

        Thread-safe: Acquires lock for write operation.
        """
        with self._lock:
            if zone_id not in self._managed_zones:
                raise KeyError(f"Zone '{zone_id}' not found")
            del self._managed_zones[zone_id]

        self._log_update("removed", zone_id)

    def enable_zone(self, zone_id: str) -> None:
        """
        Enable a zone.

        Raises:
            KeyError: If zone_id does not exist
        """
        with self._lock:
            if zone_id not in self._managed_zones:
                raise KeyError(f"Zone '{zone_id}' not found")
            self._managed_zones[zone_id].enabled = True

    def disable_zone(self, zone_id: str) -> None:
        """
        Disable a zone (kept, but not evaluated).

        Raises:
            KeyError: If zone_id does not exist
        """
        with self._lock:
            if zone_id not in self._managed_zones:
                raise KeyError(f"Zone '{zone_id}' not found")
            self._managed_zones[zone_id].enabled = False

    def replace_all(self, records: Iterable[Mapping[str, Any] | RestrictedZone]) -> int:
        """
        Replace every zone with a freshly loaded set.

        Malformed records are skipped with a warning. A record carrying an
        "enabled" key sets that flag; otherwise zones that survive the
        refresh keep their previous flag and new zones start enabled.

        Returns:
            Number of zones loaded
        """
        parsed: List[Tuple[RestrictedZone, Optional[bool]]] = []
        for record in records:
            if isinstance(record, RestrictedZone):
                parsed.append((record, None))
                continue
            declared = record.get("enabled") if isinstance(record, Mapping) else None
            flag = None if declared is None else bool(declared)
            parsed.extend((zone, flag) for zone in load_zones([record], logger=self.logger))

        with self._lock:
            previous = self._managed_zones
            fresh: Dict[str, ManagedZone] = {}
            for zone, flag in parsed:
                if flag is None:
                    old = previous.get(zone.zone_id)
                    flag = old.enabled if old is not None else True
                fresh[zone.zone_id] = ManagedZone(zone=zone, enabled=flag)
            self._managed_zones = fresh

        self._log_update("replaced", None, count=len(fresh))
        return len(fresh)

    def snapshot(self) -> List[RestrictedZone]:
        """
        Enabled zones in evaluation order.

        Thread-safe: Snapshot pattern, lock held only while copying.
        """
        with self._lock:
            return [
                managed.zone
                for managed in self._managed_zones.values()
                if managed.enabled
            ]

    def list_zones(self) -> Dict[str, bool]:
        """
        List all zones and their enabled status.

        Thread-safe: Acquires lock for read operation.
        """
        with self._lock:
            return {
                zone_id: managed.enabled
                for zone_id, managed in self._managed_zones.items()
            }

    def get_zone_info(self, zone_id: str) -> Dict[str, Any]:
        """
        Get information about a specific zone.

        Returns:
            Dictionary with zone_id, name, description, enabled, geometry

        Raises:
            KeyError: If zone_id does not exist
        """
        with self._lock:
            if zone_id not in self._managed_zones:
                raise KeyError(f"Zone '{zone_id}' not found")
            managed = self._managed_zones[zone_id]

        info = managed.zone.to_dict()
        info["enabled"] = managed.enabled
        return info

    def clear(self) -> None:
        """Remove all zones from the registry."""
        with self._lock:
            self._managed_zones.clear()

    def count(self) -> int:
        """Number of zones (enabled + disabled)."""
        with self._lock:
            return len(self._managed_zones)

    def _log_update(self, action: str, zone_id: Optional[str], **extra: Any) -> None:
        self.logger.info(
            event=LogEvent.ZONE_REGISTRY_UPDATED,
            message=f"Zone registry {action}",
            metadata={'action': action, 'zone_id': zone_id, **extra}
        )
