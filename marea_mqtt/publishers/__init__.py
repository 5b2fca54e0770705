"""
MQTT Publishers
==============

Bounded Context: Message Production

Design:
- BasePublisher: Abstract base with connection management
- ZoneTransitionPublisher: Publishes zone entry / exit transitions
- AlertPublisher: Mirrors delivered alert records
- Separation of concerns: Publishers format, broker publishes

Public API
----------
    BasePublisher: Abstract publisher (for custom publishers)
    ZoneTransitionPublisher: Zone transition message publisher
    AlertPublisher: Alert message publisher
"""

from .base import BasePublisher
from .zone_event import ZoneTransitionPublisher
from .alert import AlertPublisher

__all__ = [
    'BasePublisher',
    'ZoneTransitionPublisher',
    'AlertPublisher',
]
