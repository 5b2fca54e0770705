"""
Geofence Service - position batch orchestrator.

This module provides the GeofenceService class which runs the complete
geofencing pipeline for a batch of position reports: parsing, latest-value
upsert, zone-transition tracking, alert dispatch and MQTT publishing.

Data Flow:
    reports → VesselPosition → PositionStore.upsert (newer wins)
            → ZoneTransitionTracker.update → [ENTRY] → AlertDispatcher
            → ZoneTransitionPublisher / AlertPublisher

Threading Model:
- Distinct vessels are processed concurrently on a thread pool
- Reports of one vessel are applied in timestamp order under a per-vessel
  lock, so a vessel never has two evaluations in flight
- The zone set is snapshotted once per batch

Failure Isolation:
- A malformed report is skipped, the rest of the batch goes on
- A delivery failure is collected in BatchResult, not raised
- A store failure aborts the remaining reports of that vessel only
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from marea_alert import (
    AlertDeliveryError,
    AlertDispatcher,
    AlertRecord,
    Contact,
    ContactDirectory,
    DeliverFn,
    DispatchResult,
    InMemoryAlertLog,
    TwilioSmsDelivery,
)
from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_mqtt.schemas import (
    AlertMessage,
    GeoPoint,
    Timestamp,
    TransitionEvent,
    TransitionType,
    ZoneTransitionMessage,
)
from marea_zone import (
    GeometryError,
    MembershipState,
    PositionParseError,
    RestrictedZone,
    VesselPosition,
    ZoneTransition,
    ZoneTransitionTracker,
)
from marea_zone.analytics import VesselLocks
from marea_processor.config import ProcessorConfig
from marea_processor.registry import ZoneRegistry
from marea_processor.store import InMemoryPositionStore, StoreUnavailableError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class FailedDispatch:
    """An ENTRY (or exit notice) whose delivery failed. Retry is up to the caller."""

    transition: ZoneTransition
    error: str


@dataclass
class BatchResult:
    """
    Outcome of one process_batch() call.

    Attributes:
        received: Reports in the batch
        accepted: Reports applied (newer than the stored position)
        invalid: Malformed reports skipped
        stale: Duplicate or out-of-order reports discarded
        transitions: ENTRY / EXIT transitions, grouped by vessel
        alerts_delivered: ENTRY alerts delivered and recorded
        alerts_skipped: ENTRY alerts with no reachable contact
        failed_dispatches: Deliveries that failed (fisher NOT warned)
        vessel_errors: vessel_id -> error for vessels aborted mid-batch
    """

    received: int = 0
    accepted: int = 0
    invalid: int = 0
    stale: int = 0
    transitions: List[ZoneTransition] = field(default_factory=list)
    alerts_delivered: int = 0
    alerts_skipped: int = 0
    failed_dispatches: List[FailedDispatch] = field(default_factory=list)
    vessel_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed_dispatches and not self.vessel_errors

    @property
    def entries(self) -> List[ZoneTransition]:
        return [t for t in self.transitions if t.is_entry]

    def merge(self, other: "BatchResult") -> None:
        self.accepted += other.accepted
        self.stale += other.stale
        self.transitions.extend(other.transitions)
        self.alerts_delivered += other.alerts_delivered
        self.alerts_skipped += other.alerts_skipped
        self.failed_dispatches.extend(other.failed_dispatches)
        self.vessel_errors.update(other.vessel_errors)

    def summary(self) -> Dict[str, Any]:
        return {
            'received': self.received,
            'accepted': self.accepted,
            'invalid': self.invalid,
            'stale': self.stale,
            'transitions': len(self.transitions),
            'alerts_delivered': self.alerts_delivered,
            'alerts_skipped': self.alerts_skipped,
            'failed_dispatches': len(self.failed_dispatches),
            'vessel_errors': len(self.vessel_errors),
        }


class GeofenceService:
    """
    Main geofencing service.

    Thread Safety:
    - registry: Protected by internal lock (snapshot per batch)
    - store, tracker, alert log, contacts: internally locked
    - per-vessel processing: serialised by VesselLocks, entries dropped
      once no batch is working on that vessel
    - process_batch() may be called from several threads (e.g. the
      ingestion cycle and the MQTT subscriber)

    Usage:
        config = ProcessorConfig.from_yaml("config/geofence_config.yaml")
        service = GeofenceService.from_config(config)
        result = service.process_batch(reports)
        for failure in result.failed_dispatches:
            ...  # retry, page someone
    """

    def __init__(
        self,
        dispatcher: AlertDispatcher,
        registry: Optional[ZoneRegistry] = None,
        store: Optional[InMemoryPositionStore] = None,
        tracker: Optional[ZoneTransitionTracker] = None,
        contacts: Optional[ContactDirectory] = None,
        transition_publisher=None,  # ZoneTransitionPublisher
        alert_publisher=None,  # AlertPublisher
        service_id: str = "marea",
        exit_alerts_enabled: bool = False,
        reject_out_of_range: bool = True,
        recent_window_minutes: float = 30.0,
        max_workers: int = 8,
        structured_logger: Optional[StructuredLogger] = None
    ):
        self.dispatcher = dispatcher
        self.registry = registry if registry is not None else ZoneRegistry()
        self.store = store if store is not None else InMemoryPositionStore()
        self.tracker = tracker if tracker is not None else ZoneTransitionTracker()
        self.contacts = contacts
        self.transition_publisher = transition_publisher
        self.alert_publisher = alert_publisher
        self.service_id = service_id
        self.exit_alerts_enabled = exit_alerts_enabled
        self.reject_out_of_range = reject_out_of_range
        self.recent_window_ms = int(recent_window_minutes * 60 * 1000)
        self.max_workers = max_workers
        self.log = (structured_logger or create_logger("service")).bind(service_id=service_id)

        self._vessel_locks = VesselLocks()

        if alert_publisher is not None and dispatcher.on_record is None:
            dispatcher.on_record = self._mirror_alert

        logger.info(f"GeofenceService initialized for service_id={service_id}")

    @classmethod
    def from_config(
        cls,
        config: ProcessorConfig,
        deliver: Optional[DeliverFn] = None,
        transition_publisher=None,
        alert_publisher=None
    ) -> "GeofenceService":
        """
        Wire a service from configuration.

        Args:
            config: Processor configuration
            deliver: Delivery callable; defaults to TwilioSmsDelivery built
                from sms_config
        """
        contacts = ContactDirectory()
        for fisher in config.fishers:
            contacts.register(
                Contact(
                    owner_id=fisher.owner_id,
                    name=fisher.name,
                    phone=fisher.phone,
                    alerts_enabled=fisher.alerts_enabled,
                ),
                vessels=fisher.vessels,
            )

        sms = config.sms_config
        if deliver is None:
            deliver = TwilioSmsDelivery(
                account_sid=sms.account_sid,
                auth_token=sms.auth_token,
                from_number=sms.from_number,
                timeout=sms.timeout,
            )

        dispatcher = AlertDispatcher(
            resolve_target=contacts.resolve,
            deliver=deliver,
            alert_log=InMemoryAlertLog(),
            signature=sms.signature,
        )

        service = cls(
            dispatcher=dispatcher,
            contacts=contacts,
            transition_publisher=transition_publisher,
            alert_publisher=alert_publisher,
            service_id=config.service_id,
            exit_alerts_enabled=config.alerting.exit_alerts_enabled,
            reject_out_of_range=config.alerting.reject_out_of_range,
            recent_window_minutes=config.alerting.recent_window_minutes,
            max_workers=config.alerting.max_workers,
        )
        service.initialize_zones(config)
        return service

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def initialize_zones(self, config: ProcessorConfig) -> None:
        """Load configured zones in declaration order; malformed ones are skipped."""
        for zone_config in config.zones:
            try:
                self.registry.add_zone(zone_config.to_record(), enabled=zone_config.enabled)
            except (GeometryError, ValueError) as e:
                self.log.warning(
                    event=LogEvent.ZONE_GEOMETRY_INVALID,
                    message="Skipping malformed configured zone",
                    metadata={'zone_id': zone_config.zone_id},
                    exc_info=e
                )
                continue

            logger.info(
                f"Initialized zone: {zone_config.zone_id} "
                f"(name={zone_config.name}, enabled={zone_config.enabled})"
            )

    def refresh_zones(self, records: Iterable[Mapping[str, Any] | RestrictedZone]) -> int:
        """Replace the zone set between batches. Returns the number loaded."""
        return self.registry.replace_all(records)

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    def process_batch(self, reports: Sequence[Any]) -> BatchResult:
        """
        Process one finite batch of raw position reports.

        Returns:
            BatchResult (never raises for per-report or per-vessel failures)
        """
        result = BatchResult(received=len(reports))
        zones = self.registry.snapshot()

        grouped: Dict[str, List[VesselPosition]] = {}
        for raw in reports:
            try:
                position = VesselPosition.from_dict(
                    raw, reject_out_of_range=self.reject_out_of_range
                )
            except PositionParseError as e:
                result.invalid += 1
                self.log.warning(
                    event=LogEvent.POSITION_INVALID,
                    message="Skipping malformed position report",
                    metadata={'report': raw, 'reason': str(e)}
                )
                continue
            grouped.setdefault(position.vessel_id, []).append(position)

        self.log.info(
            event=LogEvent.POSITION_BATCH_RECEIVED,
            message="Processing position batch",
            metadata={'received': result.received, 'vessels': len(grouped),
                      'invalid': result.invalid, 'zones': len(zones)}
        )

        for positions in grouped.values():
            positions.sort(key=lambda p: p.observed_at)

        items = list(grouped.items())
        if len(items) <= 1 or self.max_workers <= 1:
            outcomes = [self._run_vessel(vid, ps, zones) for vid, ps in items]
        else:
            workers = min(self.max_workers, len(items))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="geofence") as pool:
                outcomes = list(pool.map(
                    lambda item: self._run_vessel(item[0], item[1], zones), items
                ))

        for outcome in outcomes:
            result.merge(outcome)

        self._publish_transitions(result.transitions)

        self.log.info(
            event=LogEvent.POSITION_BATCH_RECEIVED,
            message="Position batch processed",
            metadata=result.summary()
        )
        return result

    def collect_and_process(self, collector, mmsis: Optional[Sequence[str]] = None) -> BatchResult:
        """
        One ingestion cycle: collect from the AIS stream, then process.

        Args:
            collector: AisStreamCollector
            mmsis: Vessels to subscribe to; defaults to registered vessels

        Raises:
            AisStreamError: If the stream could not be opened
        """
        if mmsis is None:
            mmsis = self.contacts.registered_vessels() if self.contacts else []
        if not mmsis:
            logger.info("No registered vessels, skipping ingestion cycle")
            return BatchResult()

        reports = asyncio.run(collector.collect(mmsis))
        return self.process_batch(reports)

    def _run_vessel(
        self,
        vessel_id: str,
        positions: List[VesselPosition],
        zones: List[RestrictedZone]
    ) -> BatchResult:
        outcome = BatchResult()
        try:
            with self._vessel_locks.hold(vessel_id):
                self._process_vessel(vessel_id, positions, zones, outcome)
        except Exception as e:
            # Worker boundary: one vessel must not take the batch down
            outcome.vessel_errors[vessel_id] = str(e)
            self.log.error(
                event=LogEvent.STORE_UNAVAILABLE if isinstance(e, StoreUnavailableError)
                else LogEvent.VESSEL_PROCESSING_ERROR,
                message="Vessel processing aborted",
                exc_info=e,
                metadata={'vessel_id': vessel_id}
            )
        return outcome

    def _process_vessel(
        self,
        vessel_id: str,
        positions: List[VesselPosition],
        zones: List[RestrictedZone],
        outcome: BatchResult
    ) -> None:
        for position in positions:
            if not self.store.upsert(position):
                outcome.stale += 1
                self.log.debug(
                    event=LogEvent.POSITION_DISCARDED_STALE,
                    message="Report not newer than stored position",
                    metadata={'vessel_id': vessel_id, 'observed_at': position.observed_at}
                )
                continue

            outcome.accepted += 1
            for transition in self.tracker.update(position, zones):
                outcome.transitions.append(transition)
                if transition.is_entry:
                    self._dispatch_entry(transition, outcome)
                elif self.exit_alerts_enabled:
                    self._dispatch_exit(transition, outcome)

    def _dispatch_entry(self, transition: ZoneTransition, outcome: BatchResult) -> None:
        try:
            status = self.dispatcher.dispatch_entry_alert(transition)
        except AlertDeliveryError as e:
            outcome.failed_dispatches.append(FailedDispatch(transition, str(e)))
            return

        if status == DispatchResult.DELIVERED:
            outcome.alerts_delivered += 1
        else:
            outcome.alerts_skipped += 1

    def _dispatch_exit(self, transition: ZoneTransition, outcome: BatchResult) -> None:
        try:
            self.dispatcher.dispatch_exit_notice(transition)
        except AlertDeliveryError as e:
            outcome.failed_dispatches.append(FailedDispatch(transition, str(e)))

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _publish_transitions(self, transitions: List[ZoneTransition]) -> None:
        if self.transition_publisher is None or not transitions:
            return

        events = []
        for transition in transitions:
            try:
                events.append(to_transition_event(transition))
            except ValueError as e:
                self.log.error(
                    event=LogEvent.SERIALIZATION_ERROR,
                    message="Transition cannot be represented on the wire",
                    exc_info=e,
                    metadata=transition.to_dict()
                )

        message = ZoneTransitionMessage(
            schema_version=SCHEMA_VERSION,
            timestamp=Timestamp.now(),
            service_id=self.service_id,
            transitions=events,
        )
        if not self.transition_publisher.publish_transitions(message):
            logger.warning(f"Failed to publish {len(events)} transitions")

    def _mirror_alert(self, record: AlertRecord) -> None:
        message = to_alert_message(record, self.service_id)
        if not self.alert_publisher.publish_alert(message):
            logger.warning(f"Failed to mirror alert record {record.record_id}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def membership(self, vessel_id: str) -> Optional[MembershipState]:
        return self.tracker.get_state(vessel_id)

    def recent_positions(self, now_ms: Optional[int] = None) -> List[VesselPosition]:
        """Positions inside the recency window (30 minutes by default)."""
        return self.store.recent(self.recent_window_ms, now_ms)

    @property
    def alert_log(self) -> InMemoryAlertLog:
        return self.dispatcher.alert_log


def to_transition_event(transition: ZoneTransition) -> TransitionEvent:
    """Map a domain transition to its wire schema."""
    return TransitionEvent(
        vessel_id=transition.vessel_id,
        zone_id=transition.zone_id,
        transition_type=TransitionType(transition.kind.value),
        position=GeoPoint(lat=transition.position.lat, lon=transition.position.lon),
        observed_at=transition.observed_at,
        zone_name=transition.zone_name,
    )


def to_alert_message(record: AlertRecord, service_id: str) -> AlertMessage:
    """Map an alert record to its wire schema."""
    return AlertMessage(
        schema_version=SCHEMA_VERSION,
        timestamp=Timestamp.now(),
        service_id=service_id,
        record_id=record.record_id,
        owner_id=record.owner_id,
        vessel_id=record.vessel_id,
        alert_type=record.alert_type.value,
        position=GeoPoint(lat=record.lat, lon=record.lon),
        recorded_at=record.timestamp,
        details=record.details,
    )
