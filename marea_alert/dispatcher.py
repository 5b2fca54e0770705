"""
Alert Dispatcher
================

Turns ENTRY transitions into one SMS and one alert record.

Contract:
- One delivery attempt per ENTRY transition, never per position report
  (the tracker is edge-triggered; this module never retries)
- No reachable contact: warning, no delivery, no record
- Delivery failure: AlertDeliveryError propagates, no record
- Successful delivery: exactly one zone_entry record

Delivery failures are logged under alert.delivery.failed, apart from
geometry problems (zone.geometry.invalid): a fisher who was not warned is
a safety incident, a broken polygon is a data-quality issue.
"""

import time
from enum import Enum
from typing import Callable, Optional

from marea_alert.contacts import Contact
from marea_alert.delivery import AlertDeliveryError, DeliverFn
from marea_alert.records import AlertRecord, AlertType, InMemoryAlertLog
from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone.analytics.transitions import TransitionKind, ZoneTransition

DEFAULT_SIGNATURE = "Algerian Maritime Monitor"

ENTRY_TEMPLATE = (
    "Hello {name}, your vessel has entered the restricted zone: {zone} "
    "at coordinates ({lat:.4f}, {lon:.4f}). Please take appropriate action. "
    "- {signature}"
)

EXIT_TEMPLATE = (
    "Hello {name}, your vessel has left the restricted zone: {zone} "
    "at coordinates ({lat:.4f}, {lon:.4f}). - {signature}"
)

ResolveFn = Callable[[str], Optional[Contact]]


class DispatchResult(str, Enum):
    DELIVERED = "delivered"
    SKIPPED_NO_TARGET = "skipped_no_target"


def format_alert_message(
    template: str,
    contact: Contact,
    event: ZoneTransition,
    signature: str = DEFAULT_SIGNATURE
) -> str:
    """Render a message template for one transition (coordinates to 4 decimals)."""
    return template.format(
        name=contact.name,
        zone=event.zone_name or event.zone_id,
        lat=event.position.lat,
        lon=event.position.lon,
        signature=signature,
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


class AlertDispatcher:
    """
    Resolve, deliver, record.

    resolve_target and deliver given to the constructor are defaults; the
    dispatch methods accept per-call overrides.

    Usage:
        dispatcher = AlertDispatcher(
            resolve_target=directory.resolve,
            deliver=TwilioSmsDelivery(sid, token, number),
            alert_log=InMemoryAlertLog(),
        )
        result = dispatcher.dispatch_entry_alert(transition)
    """

    def __init__(
        self,
        resolve_target: Optional[ResolveFn] = None,
        deliver: Optional[DeliverFn] = None,
        alert_log: Optional[InMemoryAlertLog] = None,
        signature: str = DEFAULT_SIGNATURE,
        on_record: Optional[Callable[[AlertRecord], None]] = None,
        clock: Callable[[], int] = _now_ms,
        logger: Optional[StructuredLogger] = None
    ):
        self.resolve_target = resolve_target
        self.deliver = deliver
        self.alert_log = alert_log if alert_log is not None else InMemoryAlertLog()
        self.signature = signature
        self.on_record = on_record
        self.clock = clock
        self.logger = logger or create_logger("dispatcher")

    def dispatch_entry_alert(
        self,
        event: ZoneTransition,
        resolve_target: Optional[ResolveFn] = None,
        deliver: Optional[DeliverFn] = None
    ) -> DispatchResult:
        """
        Warn the owner of a vessel that entered a restricted zone.

        Returns:
            DELIVERED, or SKIPPED_NO_TARGET when nobody can be reached

        Raises:
            ValueError: If event is not an ENTRY transition
            AlertDeliveryError: If delivery failed (no record written)
        """
        if event.kind != TransitionKind.ENTRY:
            raise ValueError(f"Expected an entry transition, got {event.kind.value}")

        contact = self._resolve(event, resolve_target)
        if contact is None:
            return DispatchResult.SKIPPED_NO_TARGET

        message = format_alert_message(ENTRY_TEMPLATE, contact, event, self.signature)
        self._deliver(event, contact, message, deliver)

        record = self.alert_log.record(
            owner_id=contact.owner_id,
            vessel_id=event.vessel_id,
            lat=event.position.lat,
            lon=event.position.lon,
            timestamp=self.clock(),
            alert_type=AlertType.ZONE_ENTRY,
            details=f"Entered restricted zone: {event.zone_name or event.zone_id}",
        )
        self.logger.info(
            event=LogEvent.ALERT_RECORDED,
            message="Alert recorded",
            metadata={'record_id': record.record_id, 'owner_id': record.owner_id,
                      'vessel_id': record.vessel_id, 'zone_id': event.zone_id}
        )

        if self.on_record is not None:
            self._mirror(record)

        return DispatchResult.DELIVERED

    def dispatch_exit_notice(
        self,
        event: ZoneTransition,
        resolve_target: Optional[ResolveFn] = None,
        deliver: Optional[DeliverFn] = None
    ) -> DispatchResult:
        """
        Informational SMS for an EXIT transition. Nothing is recorded.

        Raises:
            ValueError: If event is not an EXIT transition
            AlertDeliveryError: If delivery failed
        """
        if event.kind != TransitionKind.EXIT:
            raise ValueError(f"Expected an exit transition, got {event.kind.value}")

        contact = self._resolve(event, resolve_target)
        if contact is None:
            return DispatchResult.SKIPPED_NO_TARGET

        message = format_alert_message(EXIT_TEMPLATE, contact, event, self.signature)
        self._deliver(event, contact, message, deliver)
        return DispatchResult.DELIVERED

    def _resolve(
        self,
        event: ZoneTransition,
        resolve_target: Optional[ResolveFn]
    ) -> Optional[Contact]:
        resolve = resolve_target or self.resolve_target
        if resolve is None:
            raise ValueError("No resolve_target configured")

        contact = resolve(event.vessel_id)
        if contact is None:
            self.logger.warning(
                event=LogEvent.ALERT_SKIPPED_NO_TARGET,
                message="No notification target for vessel, alert skipped",
                metadata={'vessel_id': event.vessel_id, 'zone_id': event.zone_id,
                          'kind': event.kind.value}
            )
        return contact

    def _deliver(
        self,
        event: ZoneTransition,
        contact: Contact,
        message: str,
        deliver: Optional[DeliverFn]
    ) -> None:
        send = deliver or self.deliver
        if send is None:
            raise ValueError("No deliver callable configured")

        metadata = {
            'vessel_id': event.vessel_id,
            'zone_id': event.zone_id,
            'owner_id': contact.owner_id,
            'kind': event.kind.value,
        }

        try:
            outcome = send(contact, message)
        except Exception as e:
            self.logger.error(
                event=LogEvent.ALERT_DELIVERY_FAILED,
                message="Alert delivery failed, fisher was not warned",
                exc_info=e,
                metadata=metadata
            )
            if isinstance(e, AlertDeliveryError):
                raise
            raise AlertDeliveryError(f"Alert delivery failed: {e}") from e

        if outcome is False:
            self.logger.error(
                event=LogEvent.ALERT_DELIVERY_FAILED,
                message="Delivery channel reported failure, fisher was not warned",
                metadata=metadata
            )
            raise AlertDeliveryError("Delivery channel reported failure")

        self.logger.info(
            event=LogEvent.ALERT_DELIVERED,
            message="Alert delivered",
            metadata=metadata
        )

    def _mirror(self, record: AlertRecord) -> None:
        try:
            self.on_record(record)
        except Exception as e:
            # The record is already written; mirroring is best effort
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Failed to mirror alert record",
                exc_info=e,
                metadata={'record_id': record.record_id}
            )
