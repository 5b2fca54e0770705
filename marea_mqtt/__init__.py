"""
Marea MQTT Communication Package
================================

Bounded Context: Communication Protocol and Observability

MQTT messaging for the Marea geofence service plus the structured logging
used by every other package.

Architecture:
- schemas/: Immutable data structures with type safety
- publishers/: Message producers (ZoneTransitionPublisher, AlertPublisher)
- subscriber.py: Position batch consumer (PositionSubscriber)
- logging/: Structured JSON logging for observability

Design Philosophy:
- Cohesion > Location: Each module has one reason to change
- Immutability: Use frozen dataclasses for message DTOs
- Observability: Structured logs (JSON) for production queries
- No dependency on marea_zone: the processor maps domain values to schemas

Public API
----------
Schemas:
    GeoPoint, Timestamp
    TransitionType, TransitionEvent, ZoneTransitionMessage
    AlertMessage, PositionBatchMessage

Publishers:
    ZoneTransitionPublisher, AlertPublisher
    BasePublisher (for custom publishers)

Subscriber:
    PositionSubscriber

Logging:
    LogEvent, StructuredLogger, create_logger
"""

# Version
__version__ = "1.0.0"

# Schemas
from .schemas import (
    GeoPoint,
    Timestamp,
    TransitionType,
    TransitionEvent,
    ZoneTransitionMessage,
    AlertMessage,
    PositionBatchMessage,
)

# Publishers
from .publishers import (
    BasePublisher,
    ZoneTransitionPublisher,
    AlertPublisher,
)

# Subscriber
from .subscriber import PositionSubscriber

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    # Schemas
    'GeoPoint',
    'Timestamp',
    'TransitionType',
    'TransitionEvent',
    'ZoneTransitionMessage',
    'AlertMessage',
    'PositionBatchMessage',
    # Publishers
    'BasePublisher',
    'ZoneTransitionPublisher',
    'AlertPublisher',
    # Subscriber
    'PositionSubscriber',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
