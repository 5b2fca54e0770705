"""
Configuration schema for the geofence service.

This module defines the configuration structure for the service: restricted
zones, fisher profiles and their vessels, MQTT messaging, SMS delivery, AIS
stream ingestion and alerting policy.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml


@dataclass(frozen=True)
class ZoneConfig:
    """
    Restricted zone definition.

    geometry is anything marea_zone.parse_geometry accepts: GeoJSON
    coordinates (nested lists), a GeoJSON geometry mapping, or a JSON
    string of either.
    """

    zone_id: str
    name: str
    geometry: Any
    description: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        """Validate zone configuration (geometry is validated on load)."""
        if not self.zone_id:
            raise ValueError("zone_id cannot be empty")
        if self.geometry is None:
            raise ValueError(f"Zone '{self.zone_id}' has no geometry")

    def to_record(self) -> Dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "name": self.name,
            "geometry": self.geometry,
            "description": self.description,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class FisherConfig:
    """Fisher profile and the vessels (MMSI) registered to it."""

    owner_id: str
    name: str
    phone: Optional[str] = None
    alerts_enabled: bool = True
    vessels: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate fisher configuration."""
        if not self.owner_id:
            raise ValueError("owner_id cannot be empty")
        for mmsi in self.vessels:
            if not str(mmsi).isdigit():
                raise ValueError(
                    f"Fisher '{self.owner_id}': MMSI must be numeric, got {mmsi!r}"
                )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1
    enabled: bool = False

    position_topic: str = "marea/data/positions/{service_id}"
    zone_event_topic: str = "marea/data/transitions/{service_id}"
    alert_topic: str = "marea/data/alerts/{service_id}"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

    def topics_for(self, service_id: str) -> Dict[str, str]:
        """Topics with {service_id} substituted."""
        return {
            "position": self.position_topic.format(service_id=service_id),
            "zone_event": self.zone_event_topic.format(service_id=service_id),
            "alert": self.alert_topic.format(service_id=service_id),
        }


@dataclass(frozen=True)
class SmsConfig:
    """
    Twilio SMS configuration.

    Credentials left unset in YAML fall back to TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER.
    """

    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None
    timeout: float = 10.0
    signature: str = "Algerian Maritime Monitor"

    def __post_init__(self):
        """Validate SMS configuration."""
        if not 0 < self.timeout <= 120:
            raise ValueError(f"timeout must be in (0, 120], got {self.timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SmsConfig":
        data = dict(data)
        data.setdefault("account_sid", None)
        data.setdefault("auth_token", None)
        data.setdefault("from_number", None)
        return cls(
            account_sid=data.pop("account_sid") or os.environ.get("TWILIO_ACCOUNT_SID"),
            auth_token=data.pop("auth_token") or os.environ.get("TWILIO_AUTH_TOKEN"),
            from_number=data.pop("from_number") or os.environ.get("TWILIO_PHONE_NUMBER"),
            **data,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@dataclass(frozen=True)
class IngestConfig:
    """
    aisstream.io collection settings.

    Each cycle opens the stream for time_window_seconds, collects position
    reports of at most max_vessels registered MMSIs, then closes it.
    """

    enabled: bool = False
    api_key: Optional[str] = None
    endpoint: str = "wss://stream.aisstream.io/v0/stream"
    time_window_seconds: float = 120.0
    max_vessels: int = 50
    interval_minutes: float = 5.0

    def __post_init__(self):
        """Validate ingestion configuration."""
        if self.time_window_seconds <= 0:
            raise ValueError(
                f"time_window_seconds must be > 0, got {self.time_window_seconds}"
            )
        if not 1 <= self.max_vessels <= 50:
            raise ValueError(
                f"max_vessels must be in [1, 50], got {self.max_vessels}"
            )
        if self.interval_minutes <= 0:
            raise ValueError(
                f"interval_minutes must be > 0, got {self.interval_minutes}"
            )
        if self.enabled and not self.api_key:
            raise ValueError(
                "Ingestion enabled but no api_key (set AIS_STREAM_API_KEY)"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestConfig":
        data = dict(data)
        api_key = data.pop("api_key", None) or os.environ.get("AIS_STREAM_API_KEY")
        return cls(api_key=api_key, **data)


@dataclass(frozen=True)
class AlertingConfig:
    """Alerting policy."""

    exit_alerts_enabled: bool = False
    reject_out_of_range: bool = True
    recent_window_minutes: float = 30.0
    max_workers: int = 8

    def __post_init__(self):
        """Validate alerting configuration."""
        if self.recent_window_minutes <= 0:
            raise ValueError(
                f"recent_window_minutes must be > 0, got {self.recent_window_minutes}"
            )
        if not 1 <= self.max_workers <= 64:
            raise ValueError(
                f"max_workers must be in [1, 64], got {self.max_workers}"
            )


@dataclass(frozen=True)
class ProcessorConfig:
    """
    Main configuration for the geofence service.

    This configuration is loaded from YAML and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    # Service identification
    service_id: str

    # Zones and fishers
    zones: List[ZoneConfig] = field(default_factory=list)
    fishers: List[FisherConfig] = field(default_factory=list)

    # Collaborators
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    sms_config: SmsConfig = field(default_factory=SmsConfig)
    ingest_config: IngestConfig = field(default_factory=IngestConfig)
    alerting: AlertingConfig = field(default_factory=AlertingConfig)

    def __post_init__(self):
        """Validate processor configuration."""
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

        zone_ids = [z.zone_id for z in self.zones]
        duplicates = {z for z in zone_ids if zone_ids.count(z) > 1}
        if duplicates:
            raise ValueError(f"Duplicate zone_id(s): {sorted(duplicates)}")

        owners: Dict[str, str] = {}
        for fisher in self.fishers:
            for mmsi in fisher.vessels:
                if mmsi in owners and owners[mmsi] != fisher.owner_id:
                    raise ValueError(
                        f"Vessel {mmsi} registered to both '{owners[mmsi]}' "
                        f"and '{fisher.owner_id}'"
                    )
                owners[mmsi] = fisher.owner_id

    @property
    def topics(self) -> Dict[str, str]:
        return self.mqtt_config.topics_for(self.service_id)

    def zone_records(self, include_disabled: bool = False) -> List[Dict[str, Any]]:
        """Zone records in declaration order (the evaluation order)."""
        return [
            z.to_record() for z in self.zones
            if z.enabled or include_disabled
        ]

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ProcessorConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "geofence-dz"

            zones:
              - zone_id: "coastal-buffer"
                name: "Coastal Buffer"
                coordinates: [[[3.0, 36.7], [3.4, 36.7], [3.4, 36.9], [3.0, 36.9], [3.0, 36.7]]]

            fishers:
              - owner_id: "fisher-001"
                name: "Karim"
                phone: "+213555000111"
                vessels: ["605000001"]

            mqtt_config:
              enabled: true
              broker: "localhost"

            sms_config:
              timeout: 10

            ingest_config:
              enabled: true
              time_window_seconds: 120

            alerting:
              exit_alerts_enabled: false
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessorConfig":
        zones = [
            ZoneConfig(
                zone_id=str(z["zone_id"]),
                name=str(z.get("name") or z["zone_id"]),
                geometry=_zone_geometry(z),
                description=z.get("description"),
                enabled=z.get("enabled", True),
            )
            for z in data.get("zones") or []
        ]

        fishers = [
            FisherConfig(
                owner_id=str(f["owner_id"]),
                name=str(f.get("name", "")),
                phone=f.get("phone"),
                alerts_enabled=f.get("alerts_enabled", True),
                vessels=tuple(str(v) for v in f.get("vessels") or []),
            )
            for f in data.get("fishers") or []
        ]

        return cls(
            service_id=data["service_id"],
            zones=zones,
            fishers=fishers,
            mqtt_config=MQTTConfig(**(data.get("mqtt_config") or {})),
            sms_config=SmsConfig.from_dict(data.get("sms_config") or {}),
            ingest_config=IngestConfig.from_dict(data.get("ingest_config") or {}),
            alerting=AlertingConfig(**(data.get("alerting") or {})),
        )


def _zone_geometry(zone: Dict[str, Any]) -> Any:
    for key in ("geometry", "geojson", "coordinates"):
        if zone.get(key) is not None:
            return zone[key]
    return None
