"""
marea_processor - Geofence Service for AIS vessel positions

This package provides the service that takes batches of vessel position
reports, keeps the latest position per vessel, tracks restricted-zone
membership and dispatches entry alerts.

Architecture:
- GeofenceService: Main orchestrator (batch processing)
- ZoneRegistry: Thread-safe zone management
- InMemoryPositionStore: Latest position per vessel (newer wins)
- AisStreamCollector: Time-boxed aisstream.io collection
- ProcessorConfig: Configuration management

Threading Model:
- Caller thread (ingestion cycle or MQTT subscriber thread)
- Worker pool, one task per vessel in a batch
- paho-mqtt network threads (publishers, subscriber)
"""

from marea_processor.config import ProcessorConfig
from marea_processor.registry import ZoneRegistry
from marea_processor.store import InMemoryPositionStore, StoreUnavailableError
from marea_processor.ingest import AisStreamCollector, AisStreamError, parse_aisstream_message
from marea_processor.service import BatchResult, FailedDispatch, GeofenceService

__all__ = [
    "ProcessorConfig",
    "ZoneRegistry",
    "InMemoryPositionStore",
    "StoreUnavailableError",
    "AisStreamCollector",
    "AisStreamError",
    "parse_aisstream_message",
    "BatchResult",
    "FailedDispatch",
    "GeofenceService",
]
