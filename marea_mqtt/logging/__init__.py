"""
Structured Logging for Marea
============================

Bounded Context: Observability

JSON-structured logging shared by every marea package.

Design:
- JSON output (parseable by ELK, CloudWatch, Loki)
- Typed events (enums prevent typos)
- Contextual metadata (vessel_id, zone_id, etc.)
- Thread-safe

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from marea_mqtt.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="dispatcher")
    >>> logger.error(
    ...     event=LogEvent.ALERT_DELIVERY_FAILED,
    ...     message="Twilio rejected the message",
    ...     metadata={'vessel_id': '123456789', 'zone_id': 'coastal_buffer'}
    ... )
"""

from .events import LogEvent, event_category
from .structured import JSONFormatter, StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'event_category',
    'JSONFormatter',
    'StructuredLogger',
    'create_logger',
]
