"""
Analytics Layer
===============

Bounded Context: Stateful zone-membership tracking.

Responsibilities:
- Remember which zone each vessel was last seen in
- Turn membership changes into ENTRY / EXIT transitions
- Serialise updates per vessel

Design Philosophy:
- Pure evaluation (evaluate) separated from the mutable state map
- Immutable outputs (MembershipState, ZoneTransition)
- Thread-safe via encapsulation
"""

from marea_zone.analytics.transitions import (
    MembershipState,
    TransitionKind,
    ZoneTransition,
)
from marea_zone.analytics.locks import VesselLocks
from marea_zone.analytics.tracker import ZoneTransitionTracker, evaluate

__all__ = [
    "MembershipState",
    "TransitionKind",
    "VesselLocks",
    "ZoneTransition",
    "ZoneTransitionTracker",
    "evaluate",
]
