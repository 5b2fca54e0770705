"""
Test Geofence Service
=====================

End-to-end batch processing without broker, network or SMS gateway:
delivery goes through a recording callable, publishers are fakes.

Usage:
    pytest test_geofence_service.py
"""

import pytest

from marea_alert import AlertDispatcher, AlertType, Contact
from marea_processor import GeofenceService
from marea_processor.config import (
    AlertingConfig,
    FisherConfig,
    ProcessorConfig,
    ZoneConfig,
)
from marea_zone import TransitionKind

COASTAL_BUFFER = [[[3.0, 36.7], [3.5, 36.7], [3.5, 37.0], [3.0, 37.0], [3.0, 36.7]]]
MARINE_RESERVE = [[[4.0, 36.7], [4.5, 36.7], [4.5, 37.0], [4.0, 37.0], [4.0, 36.7]]]

VESSEL = "123456789"


class RecordingDelivery:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def __call__(self, contact, message):
        if self.fail:
            raise ConnectionError("SMS gateway unreachable")
        self.sent.append((contact.owner_id, message))


class FakeTransitionPublisher:
    def __init__(self):
        self.messages = []

    def publish_transitions(self, message):
        self.messages.append(message)
        return True


class FakeAlertPublisher:
    def __init__(self):
        self.messages = []

    def publish_alert(self, message):
        self.messages.append(message)
        return True


def make_config(**alerting):
    return ProcessorConfig(
        service_id="geofence-test",
        zones=[
            ZoneConfig("coastal-buffer", "Coastal Buffer", COASTAL_BUFFER),
            ZoneConfig("marine-reserve", "Marine Reserve", MARINE_RESERVE),
        ],
        fishers=[
            FisherConfig("fisher-001", "Karim", "+213555000111", vessels=(VESSEL,)),
            FisherConfig("fisher-002", "Nadia", None, vessels=("222222222",)),
        ],
        alerting=AlertingConfig(**alerting),
    )


def make_service(deliver=None, **alerting):
    deliver = deliver or RecordingDelivery()
    return GeofenceService.from_config(make_config(**alerting), deliver=deliver), deliver


def report(lat, lon, t, mmsi=VESSEL):
    return {"mmsi": mmsi, "lat": lat, "lon": lon, "timestamp": t}


def test_coastal_buffer_scenario():
    print("\n" + "=" * 60)
    print("Coastal Buffer: enter, stay, leave")
    print("=" * 60)

    service, deliver = make_service()

    first = service.process_batch([report(36.85, 3.2, 100)])
    assert [t.kind for t in first.transitions] == [TransitionKind.ENTRY]
    assert first.transitions[0].zone_id == "coastal-buffer"
    assert first.alerts_delivered == 1
    assert len(deliver.sent) == 1
    assert deliver.sent[0] == (
        "fisher-001",
        "Hello Karim, your vessel has entered the restricted zone: Coastal Buffer "
        "at coordinates (36.8500, 3.2000). Please take appropriate action. "
        "- Algerian Maritime Monitor",
    )
    print("✓ t=100 ENTRY, one SMS")

    second = service.process_batch([report(36.85, 3.2, 200)])
    assert second.transitions == []
    assert len(deliver.sent) == 1
    print("✓ t=200 no transition")

    third = service.process_batch([report(36.60, 3.2, 300)])
    assert [t.kind for t in third.transitions] == [TransitionKind.EXIT]
    assert len(deliver.sent) == 1
    print("✓ t=300 EXIT, no SMS")

    records = service.alert_log.list()
    assert len(records) == 1
    assert records[0].alert_type == AlertType.ZONE_ENTRY
    assert records[0].details == "Entered restricted zone: Coastal Buffer"
    assert service.membership(VESSEL).currently_inside is None


def test_redelivered_batch_is_idempotent():
    service, deliver = make_service()
    batch = [report(36.85, 3.2, 100), report(36.86, 3.21, 150)]

    first = service.process_batch(batch)
    second = service.process_batch(batch)

    assert first.accepted == 2
    assert second.accepted == 0
    assert second.stale == 2
    assert second.transitions == []
    assert len(deliver.sent) == 1
    assert len(service.alert_log) == 1


def test_reports_of_one_vessel_applied_in_time_order():
    service, deliver = make_service()

    # Delivered out of order: the older inside report must not win
    result = service.process_batch([
        report(36.60, 3.2, 300),
        report(36.85, 3.2, 100),
    ])

    assert [t.kind for t in result.transitions] == [TransitionKind.ENTRY, TransitionKind.EXIT]
    assert service.store.get_latest(VESSEL).observed_at == 300


def test_malformed_reports_are_skipped():
    service, deliver = make_service()

    result = service.process_batch([
        {"mmsi": VESSEL, "lat": "north", "lon": 3.2, "timestamp": 100},
        {"lat": 36.85, "lon": 3.2, "timestamp": 100},
        "not a report",
        report(95.0, 3.2, 100),
        report(36.85, 3.2, 100),
    ])

    assert result.received == 5
    assert result.invalid == 4
    assert result.accepted == 1
    assert len(result.entries) == 1


def test_non_finite_numbers_are_invalid_reports():
    service, deliver = make_service()
    other = "222222222"

    result = service.process_batch([
        report(36.85, 3.2, "1e400", mmsi=other),
        report(36.85, 3.2, float("nan"), mmsi=other),
        report(36.85, 3.2, float("inf"), mmsi=other),
        {"mmsi": other, "lat": float("nan"), "lon": 3.2, "timestamp": 100},
        report(36.85, 3.2, 100),
    ])

    assert result.invalid == 4
    assert result.accepted == 1
    assert result.vessel_errors == {}
    assert [t.vessel_id for t in result.entries] == [VESSEL]
    assert len(deliver.sent) == 1
    assert service.membership(other) is None


def test_out_of_range_accepted_when_rejection_disabled():
    service, _ = make_service(reject_out_of_range=False)

    result = service.process_batch([report(95.0, 3.2, 100)])

    assert result.invalid == 0
    assert result.accepted == 1
    assert result.transitions == []


def test_unregistered_vessel_transition_without_alert():
    service, deliver = make_service()

    result = service.process_batch([
        report(36.85, 3.2, 100, mmsi="999999999"),
        report(36.85, 3.2, 100, mmsi="222222222"),
    ])

    assert len(result.entries) == 2
    assert result.alerts_skipped == 2
    assert result.alerts_delivered == 0
    assert deliver.sent == []
    assert len(service.alert_log) == 0


def test_delivery_failure_is_collected_not_raised():
    service, _ = make_service(deliver=RecordingDelivery(fail=True))

    result = service.process_batch([report(36.85, 3.2, 100)])

    assert not result.ok
    assert len(result.failed_dispatches) == 1
    failure = result.failed_dispatches[0]
    assert failure.transition.zone_id == "coastal-buffer"
    assert "SMS gateway unreachable" in failure.error
    assert len(service.alert_log) == 0

    # Membership is committed; the next report inside is not a new entry
    assert service.membership(VESSEL).currently_inside == "coastal-buffer"
    follow_up = service.process_batch([report(36.85, 3.2, 200)])
    assert follow_up.transitions == []


def test_moving_between_zones_alerts_for_second_zone():
    service, deliver = make_service()

    service.process_batch([report(36.85, 3.2, 100)])
    result = service.process_batch([report(36.85, 4.2, 200)])

    assert [(t.kind, t.zone_id) for t in result.transitions] == [
        (TransitionKind.EXIT, "coastal-buffer"),
        (TransitionKind.ENTRY, "marine-reserve"),
    ]
    assert len(deliver.sent) == 2
    assert "Marine Reserve" in deliver.sent[1][1]


def test_exit_notices_when_enabled():
    service, deliver = make_service(exit_alerts_enabled=True)

    service.process_batch([report(36.85, 3.2, 100)])
    service.process_batch([report(36.60, 3.2, 200)])

    assert len(deliver.sent) == 2
    assert "has left the restricted zone" in deliver.sent[1][1]
    assert len(service.alert_log) == 1


def test_store_failure_isolated_to_vessel_errors():
    service, _ = make_service()
    service.store.close()

    result = service.process_batch([report(36.85, 3.2, 100)])

    assert not result.ok
    assert VESSEL in result.vessel_errors
    assert result.transitions == []


def test_many_vessels_processed_concurrently():
    service, deliver = make_service(max_workers=4)
    vessels = [str(100000000 + i) for i in range(20)]
    directory = service.contacts
    for i, mmsi in enumerate(vessels):
        directory.register(Contact(f"owner-{i}", f"Owner {i}", f"+21355500{i:04d}"),
                           vessels=[mmsi])

    batch = []
    for mmsi in vessels:
        batch.append(report(36.85, 3.2, 100, mmsi=mmsi))
        batch.append(report(36.86, 3.2, 200, mmsi=mmsi))

    result = service.process_batch(batch)

    assert result.accepted == 40
    assert len(result.entries) == 20
    assert result.alerts_delivered == 20
    assert len(deliver.sent) == 20
    assert {r.vessel_id for r in service.alert_log.list()} == set(vessels)

    # Per-vessel locks only live while a vessel is being processed
    assert len(service._vessel_locks) == 0
    assert len(service.tracker._vessel_locks) == 0


def test_no_zones_means_no_transitions_and_state_untouched():
    service, deliver = make_service()
    service.process_batch([report(36.85, 3.2, 100)])

    assert service.refresh_zones([]) == 0
    result = service.process_batch([report(36.60, 3.2, 200)])

    assert result.accepted == 1
    assert result.transitions == []
    assert service.membership(VESSEL).currently_inside == "coastal-buffer"


def test_refresh_zones_skips_malformed_records():
    service, _ = make_service()

    loaded = service.refresh_zones([
        {"id": "harbour", "name": "Harbour",
         "geoJsonCoordinates": "[[[3.0,36.7],[3.5,36.7],[3.5,37.0],[3.0,37.0]]]"},
        {"id": "broken", "name": "Broken", "geoJsonCoordinates": "[[["},
    ])

    assert loaded == 1
    result = service.process_batch([report(36.85, 3.2, 100)])
    assert result.entries[0].zone_id == "harbour"
    assert "Harbour" in result.entries[0].zone_name


def test_disabled_configured_zone_is_not_evaluated():
    config = ProcessorConfig(
        service_id="geofence-test",
        zones=[ZoneConfig("coastal-buffer", "Coastal Buffer", COASTAL_BUFFER, enabled=False)],
    )
    service = GeofenceService.from_config(config, deliver=RecordingDelivery())

    result = service.process_batch([report(36.85, 3.2, 100)])

    assert result.transitions == []
    assert service.registry.list_zones() == {"coastal-buffer": False}


def test_recent_positions_window():
    service, _ = make_service()
    now = 10 * 60 * 60 * 1000
    service.process_batch([
        report(36.60, 3.2, now - 5 * 60 * 1000, mmsi="111111111"),
        report(36.60, 3.2, now - 45 * 60 * 1000, mmsi="222222222"),
        report(36.60, 3.2, now - 1 * 60 * 1000, mmsi="333333333"),
    ])

    recent = service.recent_positions(now_ms=now)

    assert [p.vessel_id for p in recent] == ["333333333", "111111111"]


def test_publishers_receive_transitions_and_alerts():
    transitions = FakeTransitionPublisher()
    alerts = FakeAlertPublisher()
    service = GeofenceService.from_config(
        make_config(),
        deliver=RecordingDelivery(),
        transition_publisher=transitions,
        alert_publisher=alerts,
    )

    service.process_batch([report(36.85, 3.2, 100)])

    assert len(transitions.messages) == 1
    message = transitions.messages[0]
    assert message.service_id == "geofence-test"
    assert message.transition_count == 1
    assert message.transitions[0].zone_id == "coastal-buffer"

    assert len(alerts.messages) == 1
    assert alerts.messages[0].alert_type == "zone_entry"
    assert alerts.messages[0].owner_id == "fisher-001"

    # Nothing happened, nothing published
    service.process_batch([report(36.85, 3.2, 200)])
    assert len(transitions.messages) == 1


def test_service_without_resolver_raises_on_entry():
    service = GeofenceService(dispatcher=AlertDispatcher(deliver=RecordingDelivery()))
    service.refresh_zones([{"id": "coastal-buffer", "coordinates": COASTAL_BUFFER}])

    result = service.process_batch([report(36.85, 3.2, 100)])

    # Misconfiguration surfaces as a vessel error, not a silent skip
    assert VESSEL in result.vessel_errors


def test_collect_and_process_uses_registered_vessels():
    service, deliver = make_service()

    class FakeCollector:
        def __init__(self):
            self.requested = None

        async def collect(self, mmsis):
            self.requested = list(mmsis)
            return [report(36.85, 3.2, 100)]

    collector = FakeCollector()
    result = service.collect_and_process(collector)

    assert collector.requested == [VESSEL, "222222222"]
    assert len(result.entries) == 1
    assert len(deliver.sent) == 1


def test_duplicate_vessel_owner_rejected_in_config():
    with pytest.raises(ValueError):
        ProcessorConfig(
            service_id="geofence-test",
            fishers=[
                FisherConfig("fisher-001", "Karim", vessels=(VESSEL,)),
                FisherConfig("fisher-002", "Nadia", vessels=(VESSEL,)),
            ],
        )
