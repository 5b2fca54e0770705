"""
Marea MQTT Schemas
==================

Bounded Context: Data Structures

This module defines immutable, typed data structures for MQTT messages.

Design:
- Frozen dataclasses (immutability)
- Type hints for all fields
- to_dict() for JSON serialization
- from_dict() for deserialization
- Schema versioning for evolution

Public API
----------
Common Types:
    GeoPoint: WGS84 position with range validation
    Timestamp: ISO 8601 timestamp wrapper

Zone Transition Types:
    TransitionType: Enum (ENTRY, EXIT)
    TransitionEvent: Single transition
    ZoneTransitionMessage: Transitions of one processed batch

Alert Types:
    AlertMessage: Mirrored alert record

Position Types:
    PositionBatchMessage: Inbound batch of raw reports
"""

from .common import GeoPoint, Timestamp
from .zone_event import TransitionType, TransitionEvent, ZoneTransitionMessage
from .alert import ALERT_TYPES, AlertMessage
from .position import PositionBatchMessage

__all__ = [
    # Common types
    'GeoPoint',
    'Timestamp',
    # Zone transition types
    'TransitionType',
    'TransitionEvent',
    'ZoneTransitionMessage',
    # Alert types
    'ALERT_TYPES',
    'AlertMessage',
    # Position types
    'PositionBatchMessage',
]
