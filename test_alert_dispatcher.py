"""
Test Alert Dispatcher
=====================

Delivery-then-record semantics, skipping, message format and the Twilio
delivery channel (with a fake HTTP session, no network).

Usage:
    pytest test_alert_dispatcher.py
"""

import pytest
import requests

from marea_alert import (
    AlertDeliveryError,
    AlertDispatcher,
    AlertType,
    Contact,
    ContactDirectory,
    DispatchResult,
    InMemoryAlertLog,
    TwilioSmsDelivery,
)
from marea_zone import TransitionKind, VesselPosition, ZoneTransition

KARIM = Contact("fisher-001", "Karim", "+213555000111")


def transition(kind=TransitionKind.ENTRY, lat=36.85, lon=3.2, vessel_id="123456789"):
    return ZoneTransition(
        kind=kind,
        vessel_id=vessel_id,
        zone_id="coastal-buffer",
        position=VesselPosition(vessel_id, lat, lon, 100),
        zone_name="Coastal Buffer",
    )


class RecordingDelivery:
    """Delivery callable that remembers what it was asked to send."""

    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def __call__(self, contact, message):
        if self.error is not None:
            raise self.error
        self.sent.append((contact.phone, message))


def make_dispatcher(deliver, contact=KARIM, **kwargs):
    return AlertDispatcher(
        resolve_target=lambda vessel_id: contact,
        deliver=deliver,
        alert_log=InMemoryAlertLog(),
        clock=lambda: 1_700_000_000_000,
        **kwargs
    )


def test_entry_alert_delivers_and_records():
    print("\n" + "=" * 60)
    print("ENTRY: one SMS, one zone_entry record")
    print("=" * 60)

    deliver = RecordingDelivery()
    dispatcher = make_dispatcher(deliver)

    result = dispatcher.dispatch_entry_alert(transition())

    assert result == DispatchResult.DELIVERED
    assert len(deliver.sent) == 1
    records = dispatcher.alert_log.list()
    assert len(records) == 1

    record = records[0]
    assert record.owner_id == "fisher-001"
    assert record.vessel_id == "123456789"
    assert (record.lat, record.lon) == (36.85, 3.2)
    assert record.alert_type == AlertType.ZONE_ENTRY
    assert record.details == "Entered restricted zone: Coastal Buffer"
    assert record.timestamp == 1_700_000_000_000
    print(f"✓ Record {record.record_id} written")


def test_message_format_uses_four_decimals():
    deliver = RecordingDelivery()
    dispatcher = make_dispatcher(deliver)

    dispatcher.dispatch_entry_alert(transition(lat=36.123456, lon=3.1))

    phone, message = deliver.sent[0]
    assert phone == "+213555000111"
    assert message == (
        "Hello Karim, your vessel has entered the restricted zone: Coastal Buffer "
        "at coordinates (36.1235, 3.1000). Please take appropriate action. "
        "- Algerian Maritime Monitor"
    )


def test_custom_signature():
    deliver = RecordingDelivery()
    dispatcher = make_dispatcher(deliver, signature="Harbour Watch")

    dispatcher.dispatch_entry_alert(transition())

    assert deliver.sent[0][1].endswith("- Harbour Watch")


def test_no_target_skips_without_record():
    deliver = RecordingDelivery()
    dispatcher = make_dispatcher(deliver, contact=None)

    result = dispatcher.dispatch_entry_alert(transition())

    assert result == DispatchResult.SKIPPED_NO_TARGET
    assert deliver.sent == []
    assert len(dispatcher.alert_log) == 0


def test_delivery_failure_propagates_without_record():
    deliver = RecordingDelivery(error=ConnectionError("gateway down"))
    dispatcher = make_dispatcher(deliver)

    with pytest.raises(AlertDeliveryError):
        dispatcher.dispatch_entry_alert(transition())

    assert len(dispatcher.alert_log) == 0


def test_delivery_error_is_not_rewrapped():
    original = AlertDeliveryError("Twilio SMS failed: 500 Internal Server Error")
    dispatcher = make_dispatcher(RecordingDelivery(error=original))

    with pytest.raises(AlertDeliveryError) as exc_info:
        dispatcher.dispatch_entry_alert(transition())

    assert exc_info.value is original


def test_channel_returning_false_counts_as_failure():
    dispatcher = make_dispatcher(lambda contact, message: False)

    with pytest.raises(AlertDeliveryError):
        dispatcher.dispatch_entry_alert(transition())

    assert len(dispatcher.alert_log) == 0


def test_per_call_overrides():
    default = RecordingDelivery()
    override = RecordingDelivery()
    dispatcher = make_dispatcher(default)

    dispatcher.dispatch_entry_alert(
        transition(),
        resolve_target=lambda vessel_id: Contact("fisher-009", "Samir", "+213555000999"),
        deliver=override,
    )

    assert default.sent == []
    assert override.sent[0][0] == "+213555000999"
    assert dispatcher.alert_log.list()[0].owner_id == "fisher-009"


def test_entry_alert_rejects_exit_transition():
    dispatcher = make_dispatcher(RecordingDelivery())

    with pytest.raises(ValueError):
        dispatcher.dispatch_entry_alert(transition(kind=TransitionKind.EXIT))


def test_exit_notice_sends_but_does_not_record():
    deliver = RecordingDelivery()
    dispatcher = make_dispatcher(deliver)

    result = dispatcher.dispatch_exit_notice(transition(kind=TransitionKind.EXIT))

    assert result == DispatchResult.DELIVERED
    assert "has left the restricted zone: Coastal Buffer" in deliver.sent[0][1]
    assert len(dispatcher.alert_log) == 0

    with pytest.raises(ValueError):
        dispatcher.dispatch_exit_notice(transition())


def test_on_record_failure_does_not_undo_record():
    def broken_mirror(record):
        raise RuntimeError("broker unreachable")

    dispatcher = make_dispatcher(RecordingDelivery(), on_record=broken_mirror)

    assert dispatcher.dispatch_entry_alert(transition()) == DispatchResult.DELIVERED
    assert len(dispatcher.alert_log) == 1


def test_on_record_receives_record():
    mirrored = []
    dispatcher = make_dispatcher(RecordingDelivery(), on_record=mirrored.append)

    dispatcher.dispatch_entry_alert(transition())

    assert mirrored == dispatcher.alert_log.list()


def test_contact_directory_resolution():
    directory = ContactDirectory()
    directory.register(KARIM, vessels=["123456789", "111222333"])
    directory.register(Contact("fisher-002", "Nadia", phone=None), vessels=["444555666"])
    directory.register(
        Contact("fisher-003", "Omar", "+213555000333", alerts_enabled=False),
        vessels=["777888999"],
    )

    assert directory.resolve("123456789") == KARIM
    assert directory.resolve("111222333") == KARIM
    assert directory.resolve("444555666") is None
    assert directory.resolve("777888999") is None
    assert directory.resolve("000000000") is None
    assert len(directory) == 3

    with pytest.raises(ValueError):
        directory.register(Contact("fisher-004", "Yacine", "+213555000444"),
                           vessels=["123456789"])

    directory.unregister_vessel("111222333")
    assert directory.resolve("111222333") is None
    assert "111222333" not in directory.registered_vessels()


def test_dispatcher_with_unreachable_contact_skips():
    directory = ContactDirectory()
    directory.register(Contact("fisher-002", "Nadia", phone=None), vessels=["123456789"])
    deliver = RecordingDelivery()
    dispatcher = AlertDispatcher(resolve_target=directory.resolve, deliver=deliver)

    assert dispatcher.dispatch_entry_alert(transition()) == DispatchResult.SKIPPED_NO_TARGET
    assert deliver.sent == []
    assert len(dispatcher.alert_log) == 0


class FakeResponse:
    def __init__(self, status_code=201, payload=None, reason="Created"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload if payload is not None else {"sid": "SM123"}
        self.text = str(self._payload)

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, data=None, auth=None, timeout=None):
        self.calls.append({'url': url, 'data': data, 'auth': auth, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_twilio_delivery_posts_form():
    session = FakeSession()
    deliver = TwilioSmsDelivery("AC123", "token", "+15005550006", timeout=5.0, session=session)

    sid = deliver(KARIM, "Hello")

    assert sid == "SM123"
    call = session.calls[0]
    assert call['url'] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert call['data'] == {'From': '+15005550006', 'To': '+213555000111', 'Body': 'Hello'}
    assert call['auth'] == ("AC123", "token")
    assert call['timeout'] == 5.0


def test_twilio_delivery_not_configured():
    session = FakeSession()
    deliver = TwilioSmsDelivery(None, "token", "+15005550006", session=session)

    assert not deliver.is_configured
    with pytest.raises(AlertDeliveryError, match="configuration is incomplete"):
        deliver(KARIM, "Hello")
    assert session.calls == []


def test_twilio_delivery_non_ok_response():
    session = FakeSession(FakeResponse(400, {"message": "invalid To"}, "Bad Request"))
    deliver = TwilioSmsDelivery("AC123", "token", "+15005550006", session=session)

    with pytest.raises(AlertDeliveryError, match="Twilio SMS failed: 400 Bad Request"):
        deliver(KARIM, "Hello")


def test_twilio_delivery_transport_error():
    session = FakeSession(error=requests.Timeout("read timed out"))
    deliver = TwilioSmsDelivery("AC123", "token", "+15005550006", session=session)

    with pytest.raises(AlertDeliveryError):
        deliver(KARIM, "Hello")
