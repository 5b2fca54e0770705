"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Geometry problems (data quality) and delivery failures (safety) live in
  different namespaces so they can be told apart in any log aggregator

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, position, zone, alert, ingest, error
    category: transition, delivery, geometry, publish
    action: success, failed, skipped

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.vessel_id
    | filter event = "alert.delivery.failed"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - position.*: Vessel position intake
    - zone.*: Zone membership and zone definitions
    - alert.*: Alert dispatch (safety relevant)
    - ingest.*: AIS stream collection
    - error.*: Infrastructure error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Position Events ==========
    POSITION_BATCH_RECEIVED = "position.batch.received"
    """A batch of position reports entered the service."""

    POSITION_INVALID = "position.invalid"
    """A position report was malformed and skipped."""

    POSITION_DISCARDED_STALE = "position.discarded.stale"
    """A report was not newer than the stored position (duplicate/replay)."""

    # ========== Zone Events ==========
    ZONE_ENTRY = "zone.transition.entry"
    """Vessel entered a restricted zone."""

    ZONE_EXIT = "zone.transition.exit"
    """Vessel left a restricted zone."""

    ZONE_GEOMETRY_INVALID = "zone.geometry.invalid"
    """A zone geometry could not be parsed or evaluated; zone skipped."""

    ZONE_REGISTRY_UPDATED = "zone.registry.updated"
    """Zone definitions added, updated, removed or refreshed."""

    ZONE_EVENT_SERIALIZED = "zone.event.serialized"
    """Zone transition message serialized to JSON."""

    ZONE_EVENT_PUBLISHED = "zone.event.published"
    """Zone transition message published to broker."""

    # ========== Alert Events ==========
    ALERT_DELIVERED = "alert.delivered"
    """Alert message accepted by the delivery channel."""

    ALERT_SKIPPED_NO_TARGET = "alert.skipped.no_target"
    """No reachable contact for the vessel; nothing delivered."""

    ALERT_DELIVERY_FAILED = "alert.delivery.failed"
    """Delivery channel rejected or timed out. The fisher was NOT warned."""

    ALERT_RECORDED = "alert.recorded"
    """Alert record appended to the alert log."""

    ALERT_PUBLISHED = "alert.published"
    """Alert record mirrored to the broker."""

    # ========== Ingestion Events ==========
    INGEST_STARTED = "ingest.started"
    """AIS stream collection window opened."""

    INGEST_COMPLETED = "ingest.completed"
    """AIS stream collection window closed (possibly partial)."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message decoded but failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

    STORE_UNAVAILABLE = "error.store_unavailable"
    """Position or membership store could not be read or written."""

    VESSEL_PROCESSING_ERROR = "error.vessel_processing"
    """Processing of one vessel aborted; other vessels unaffected."""

    INGEST_ERROR = "error.ingest"
    """AIS stream connection failed."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

ZONE_EVENTS = {
    LogEvent.ZONE_ENTRY,
    LogEvent.ZONE_EXIT,
    LogEvent.ZONE_GEOMETRY_INVALID,
    LogEvent.ZONE_REGISTRY_UPDATED,
    LogEvent.ZONE_EVENT_SERIALIZED,
    LogEvent.ZONE_EVENT_PUBLISHED,
}

ALERT_EVENTS = {
    LogEvent.ALERT_DELIVERED,
    LogEvent.ALERT_SKIPPED_NO_TARGET,
    LogEvent.ALERT_DELIVERY_FAILED,
    LogEvent.ALERT_RECORDED,
    LogEvent.ALERT_PUBLISHED,
}

DATA_QUALITY_EVENTS = {
    LogEvent.POSITION_INVALID,
    LogEvent.ZONE_GEOMETRY_INVALID,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.SCHEMA_VALIDATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
    LogEvent.STORE_UNAVAILABLE,
    LogEvent.VESSEL_PROCESSING_ERROR,
    LogEvent.INGEST_ERROR,
}

# A fisher who should have been warned and was not
SAFETY_EVENTS = {
    LogEvent.ALERT_DELIVERY_FAILED,
    LogEvent.ALERT_SKIPPED_NO_TARGET,
}


def event_category(event: LogEvent) -> str:
    """
    Category tag written next to the event name.

    safety and data_quality take precedence over the namespace, so
    "alert.delivery.failed" is tagged safety and "zone.geometry.invalid"
    data_quality.
    """
    if event in SAFETY_EVENTS:
        return "safety"
    if event in DATA_QUALITY_EVENTS:
        return "data_quality"
    return event.value.split(".", 1)[0]
