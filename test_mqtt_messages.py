"""
Test MQTT Messages
==================

Wire schemas, publisher formatting and the position subscriber, without a
broker: publishing goes through a stubbed paho client call.

Usage:
    pytest test_mqtt_messages.py
"""

import json
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from marea_mqtt import (
    AlertMessage,
    AlertPublisher,
    GeoPoint,
    PositionBatchMessage,
    PositionSubscriber,
    Timestamp,
    TransitionEvent,
    TransitionType,
    ZoneTransitionMessage,
    ZoneTransitionPublisher,
    create_logger,
)
from marea_mqtt.logging import LogEvent, event_category
from marea_alert import AlertType, InMemoryAlertLog
from marea_processor.service import to_alert_message, to_transition_event
from marea_zone import TransitionKind, VesselPosition, ZoneTransition


def sample_transition_message():
    entry = TransitionEvent(
        vessel_id="123456789",
        zone_id="coastal-buffer",
        transition_type=TransitionType.ENTRY,
        position=GeoPoint(lat=36.85, lon=3.2),
        observed_at=100,
        zone_name="Coastal Buffer",
    )
    exit_ = TransitionEvent(
        vessel_id="605000002",
        zone_id="marine-reserve",
        transition_type=TransitionType.EXIT,
        position=GeoPoint(lat=36.6, lon=4.1),
        observed_at=120,
    )
    return ZoneTransitionMessage(
        schema_version="1.0",
        timestamp=Timestamp.from_epoch_ms(0),
        service_id="geofence-dz",
        transitions=[entry, exit_],
    )


def test_transition_message_roundtrip():
    print("\n" + "=" * 60)
    print("Zone transition message serialization")
    print("=" * 60)

    message = sample_transition_message()
    data = json.loads(json.dumps(message.to_dict()))

    assert data['timestamp'] == "1970-01-01T00:00:00+00:00"
    assert data['transitions'][0]['transition_type'] == "entry"
    assert data['transitions'][0]['position'] == {'lat': 36.85, 'lon': 3.2}

    restored = ZoneTransitionMessage.from_dict(data)
    assert restored == message
    assert restored.transition_count == 2
    assert [t.zone_id for t in restored.get_entries()] == ["coastal-buffer"]
    assert len(restored.get_transitions_for_vessel("605000002")) == 1
    print("✓ Round trip preserved all transitions")


def test_transition_message_rejects_bad_payload():
    with pytest.raises(ValueError):
        ZoneTransitionMessage.from_dict({"schema_version": "1.0"})
    with pytest.raises(ValueError):
        TransitionEvent.from_dict({
            "vessel_id": "1", "zone_id": "z", "transition_type": "teleport",
            "position": {"lat": 0, "lon": 0}, "observed_at": 1,
        })


def test_geopoint_and_timestamp():
    with pytest.raises(ValueError):
        GeoPoint(lat=91.0, lon=0.0)
    with pytest.raises(ValueError):
        GeoPoint.from_dict({"lat": 1.0})

    ts = Timestamp.from_epoch_ms(1_700_000_000_000)
    assert ts.to_epoch_ms() == 1_700_000_000_000
    assert Timestamp("2024-01-01T00:00:00Z").to_epoch_ms() == 1_704_067_200_000
    with pytest.raises(ValueError):
        Timestamp("yesterday").to_datetime()


def test_alert_message_from_record():
    record = InMemoryAlertLog().record(
        owner_id="fisher-001",
        vessel_id="123456789",
        lat=36.85,
        lon=3.2,
        timestamp=1_700_000_000_000,
        alert_type=AlertType.ZONE_ENTRY,
        details="Entered restricted zone: Coastal Buffer",
    )

    message = to_alert_message(record, "geofence-dz")
    data = message.to_dict()

    assert data['alert_type'] == "zone_entry"
    assert data['recorded_at'] == 1_700_000_000_000
    assert data['record_id'] == record.record_id
    assert AlertMessage.from_dict(json.loads(json.dumps(data))) == message

    with pytest.raises(ValueError):
        AlertMessage.from_dict({**data, 'alert_type': 'zone_exit'})


def test_transition_event_from_domain():
    transition = ZoneTransition(
        kind=TransitionKind.EXIT,
        vessel_id="123456789",
        zone_id="coastal-buffer",
        position=VesselPosition("123456789", 36.6, 3.2, 300),
    )

    event = to_transition_event(transition)

    assert event.transition_type == TransitionType.EXIT
    assert event.observed_at == 300
    assert event.zone_name is None
    assert not event.is_entry


def test_position_batch_payload_shapes():
    single = {"mmsi": "123456789", "lat": 36.85, "lon": 3.2, "timestamp": 100}

    assert PositionBatchMessage.from_payload(single).positions == [single]
    assert PositionBatchMessage.from_payload([single, single]).position_count == 2

    wrapped = PositionBatchMessage.from_payload({"source": "replay", "positions": [single]})
    assert wrapped.source == "replay"
    assert wrapped.to_dict() == {"source": "replay", "positions": [single]}

    for bad in ("text", 42, {"positions": "nope"}):
        with pytest.raises(ValueError):
            PositionBatchMessage.from_payload(bad)


class StubPublishResult:
    """Stands in for paho's MQTTMessageInfo."""

    def __init__(self, rc, acked=True):
        self.rc = rc
        self.acked = acked
        self.waited_for = None

    def wait_for_publish(self, timeout=None):
        self.waited_for = timeout

    def is_published(self):
        return self.acked


def connected(publisher, rc=mqtt.MQTT_ERR_SUCCESS, acked=True):
    """Mark a publisher connected and capture what it sends."""
    sent = []

    def fake_publish(topic, payload, qos, retain):
        sent.append({'topic': topic, 'payload': json.loads(payload), 'qos': qos})
        return StubPublishResult(rc, acked)

    publisher.client.publish = fake_publish
    publisher._connected.set()
    return sent


def test_transition_publisher():
    publisher = ZoneTransitionPublisher(
        broker_host="localhost",
        topic="marea/data/transitions/geofence-dz",
        logger=create_logger("test_transitions"),
    )

    # Not connected: nothing goes out
    assert not publisher.publish_transitions(sample_transition_message())

    sent = connected(publisher)
    assert publisher.publish_transitions(sample_transition_message())
    assert sent[0]['topic'] == "marea/data/transitions/geofence-dz"
    assert sent[0]['qos'] == 1
    assert len(sent[0]['payload']['transitions']) == 2

    empty = ZoneTransitionMessage("1.0", Timestamp.now(), "geofence-dz", [])
    assert publisher.publish_transitions(empty)
    assert len(sent) == 1


def test_alert_publisher_reports_broker_failure():
    publisher = AlertPublisher(
        broker_host="localhost",
        topic="marea/data/alerts/geofence-dz",
        logger=create_logger("test_alerts"),
    )
    connected(publisher, rc=mqtt.MQTT_ERR_NO_CONN)

    record = InMemoryAlertLog().record("fisher-001", "123456789", 36.85, 3.2, 1,
                                       AlertType.ZONE_ENTRY)
    assert not publisher.publish_alert(to_alert_message(record, "geofence-dz"))


def test_position_subscriber_dispatches_batches():
    received = []
    subscriber = PositionSubscriber(
        broker_host="localhost",
        position_topic="marea/data/positions/geofence-dz",
        on_positions=received.append,
        logger=create_logger("test_subscriber"),
    )

    payload = {"positions": [
        {"mmsi": "123456789", "lat": 36.85, "lon": 3.2, "timestamp": 100},
        {"mmsi": "605000002", "lat": 36.6, "lon": 4.1, "timestamp": 100},
    ]}
    subscriber._on_message(None, None, SimpleNamespace(
        topic="marea/data/positions/geofence-dz",
        payload=json.dumps(payload).encode('utf-8'),
    ))
    subscriber._on_message(None, None, SimpleNamespace(
        topic="marea/data/positions/geofence-dz",
        payload=b"\xff not json",
    ))
    subscriber.handle_payload("neither object nor list")

    assert len(received) == 1
    assert received[0].position_count == 2

    stats = subscriber.get_stats()
    assert stats['batches_received'] == 1
    assert stats['reports_received'] == 2
    assert stats['payloads_rejected'] == 2
    assert stats['broker'] == "localhost:1883"


def test_position_subscriber_survives_callback_errors():
    def explode(batch):
        raise RuntimeError("downstream failure")

    subscriber = PositionSubscriber(
        broker_host="localhost",
        position_topic="marea/data/positions/geofence-dz",
        on_positions=explode,
        logger=create_logger("test_subscriber"),
    )

    batch = subscriber.handle_payload([{"mmsi": "1", "lat": 0, "lon": 0, "timestamp": 1}])

    assert batch is not None
    assert subscriber.get_stats()['batches_received'] == 1


def test_publish_without_puback_counts_as_failure():
    publisher = AlertPublisher(
        broker_host="localhost",
        topic="marea/data/alerts/geofence-dz",
        logger=create_logger("test_alerts"),
        ack_timeout=0.1,
    )
    connected(publisher, acked=False)

    record = InMemoryAlertLog().record("fisher-001", "123456789", 36.85, 3.2, 1,
                                       AlertType.ZONE_ENTRY)
    assert not publisher.publish_alert(to_alert_message(record, "geofence-dz"))

    stats = publisher.get_stats()
    assert stats['published'] == 0
    assert stats['failed'] == 1
    assert "PUBACK" in stats['last_error']


def test_structured_log_entries():
    log = create_logger("test_logging").bind(service_id="geofence-dz")

    entry = log.build_entry(
        "ERROR",
        LogEvent.ALERT_DELIVERY_FAILED,
        "Alert delivery failed",
        metadata={'vessel_id': '123456789'},
        exc_info=ConnectionError("gateway down"),
    )

    assert entry['event'] == "alert.delivery.failed"
    assert entry['category'] == "safety"
    assert entry['metadata'] == {'service_id': 'geofence-dz', 'vessel_id': '123456789'}
    assert entry['exception'] == {'type': 'ConnectionError', 'message': 'gateway down'}

    assert event_category(LogEvent.ZONE_GEOMETRY_INVALID) == "data_quality"
    assert event_category(LogEvent.ZONE_ENTRY) == "zone"
    assert event_category(LogEvent.MQTT_CONNECTED) == "mqtt"
