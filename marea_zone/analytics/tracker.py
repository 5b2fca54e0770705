"""
Zone Transition Tracker Module
==============================

Edge-triggered membership tracking per vessel.

Design:
- evaluate() is pure: receives prior state, returns new state + transitions
- ZoneTransitionTracker encapsulates the per-vessel state map
- Read-modify-write is serialised per vessel id (VesselLocks)
- Reports not newer than the stored state are ignored (replay guard)

A vessel drifting inside a zone for an hour produces one ENTRY, not one
event per report. Downstream alerting relies on that.
"""

import threading
from contextlib import AbstractContextManager
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone.analytics.locks import VesselLocks
from marea_zone.analytics.transitions import (
    MembershipState,
    TransitionKind,
    ZoneTransition,
)
from marea_zone.geometry.detector import ZoneDetector
from marea_zone.vessel import VesselPosition


def evaluate(
    position: VesselPosition,
    zones: Optional[Sequence],
    prior_state: Optional[MembershipState] = None,
    logger: Optional[StructuredLogger] = None
) -> Tuple[Optional[MembershipState], List[ZoneTransition]]:
    """
    Re-evaluate one vessel's membership against all zones.

    Args:
        position: New report
        zones: Zones in evaluation order (objects with zone_id, name, geometry)
        prior_state: Last known state, None on first sighting

    Returns:
        Tuple of:
        - new_state: Updated state (prior_state untouched if no zones)
        - transitions: [], [ENTRY], [EXIT] or [EXIT, ENTRY]
    """
    if not zones:
        return prior_state, []

    zones = list(zones)
    previous_zone = prior_state.currently_inside if prior_state else None
    current_zone = ZoneDetector.point_in_any_zone(position.point, zones, logger)

    new_state = MembershipState(
        vessel_id=position.vessel_id,
        currently_inside=current_zone,
        observed_at=position.observed_at,
    )

    if current_zone == previous_zone:
        return new_state, []

    names = {zone.zone_id: getattr(zone, "name", None) for zone in zones}
    transitions: List[ZoneTransition] = []

    # A -> B without an outside reading is EXIT(A) then ENTRY(B)
    if previous_zone is not None:
        transitions.append(ZoneTransition(
            kind=TransitionKind.EXIT,
            vessel_id=position.vessel_id,
            zone_id=previous_zone,
            position=position,
            zone_name=names.get(previous_zone),
        ))
    if current_zone is not None:
        transitions.append(ZoneTransition(
            kind=TransitionKind.ENTRY,
            vessel_id=position.vessel_id,
            zone_id=current_zone,
            position=position,
            zone_name=names.get(current_zone),
        ))

    return new_state, transitions


class ZoneTransitionTracker:
    """
    Holds the last known zone of every vessel and emits transitions.

    State:
        {vessel_id: MembershipState}

    Thread Safety:
        update() takes a per-vessel lock, so two concurrent reports for the
        same vessel cannot both produce an ENTRY for one physical crossing.
        Distinct vessels never block each other.

    Usage:
        tracker = ZoneTransitionTracker()
        for transition in tracker.update(position, zones):
            if transition.is_entry:
                dispatcher.dispatch_entry_alert(transition)
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger("tracker")
        self._states: Dict[str, MembershipState] = {}
        self._vessel_locks = VesselLocks()
        self._lock = threading.Lock()

    def vessel_lock(self, vessel_id: str) -> AbstractContextManager:
        """Context manager serialising membership updates for one vessel."""
        return self._vessel_locks.hold(vessel_id)

    def update(
        self,
        position: VesselPosition,
        zones: Optional[Sequence]
    ) -> List[ZoneTransition]:
        """
        Apply one report and return the transitions it caused.

        Reports with observed_at <= the stored state's observed_at are
        ignored. With no zones the state is left untouched.
        """
        with self.vessel_lock(position.vessel_id):
            prior = self.get_state(position.vessel_id)

            if (
                prior is not None
                and prior.observed_at is not None
                and position.observed_at <= prior.observed_at
            ):
                self.logger.debug(
                    event=LogEvent.POSITION_DISCARDED_STALE,
                    message="Report not newer than membership state",
                    metadata={
                        'vessel_id': position.vessel_id,
                        'observed_at': position.observed_at,
                        'state_observed_at': prior.observed_at,
                    }
                )
                return []

            new_state, transitions = evaluate(position, zones, prior, self.logger)

            if new_state is not None:
                with self._lock:
                    self._states[position.vessel_id] = new_state

        for transition in transitions:
            self._log_transition(transition)

        return transitions

    def _log_transition(self, transition: ZoneTransition) -> None:
        event = LogEvent.ZONE_ENTRY if transition.is_entry else LogEvent.ZONE_EXIT
        self.logger.info(
            event=event,
            message=f"Vessel {transition.kind.value} restricted zone",
            metadata=transition.to_dict()
        )

    def get_state(self, vessel_id: str) -> Optional[MembershipState]:
        with self._lock:
            return self._states.get(vessel_id)

    def states(self) -> Dict[str, MembershipState]:
        """Snapshot copy of all states."""
        with self._lock:
            return dict(self._states)

    def restore(self, states: Iterable[MembershipState]) -> None:
        """Seed states, e.g. from a persisted copy after restart."""
        with self._lock:
            for state in states:
                self._states[state.vessel_id] = state

    def prune(self, active_vessel_ids: set[str]) -> None:
        """Remove state for vessels no longer tracked."""
        with self._lock:
            for vessel_id in set(self._states) - active_vessel_ids:
                del self._states[vessel_id]

    def reset(self) -> None:
        """Forget every vessel."""
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def __repr__(self) -> str:
        return f"ZoneTransitionTracker(tracked={len(self)})"
