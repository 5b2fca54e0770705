"""
Structured JSON Logger
======================

One JSON document per log line, tagged with a component, a typed event and
its category (safety / data_quality / namespace).

Loggers can be bound to context (service_id, vessel_id, ...) that is merged
into the metadata of every entry:

    >>> log = create_logger("service").bind(service_id="geofence-dz")
    >>> log.info(
    ...     event=LogEvent.ZONE_ENTRY,
    ...     message="Vessel entered restricted zone",
    ...     metadata={'vessel_id': '123456789', 'zone_id': 'coastal-buffer'}
    ... )

Output:
    {"timestamp": "2025-10-24T15:30:45.123456+00:00", "level": "INFO",
     "component": "service", "event": "zone.transition.entry",
     "category": "zone", "message": "Vessel entered restricted zone",
     "metadata": {"service_id": "geofence-dz", "vessel_id": "123456789",
                  "zone_id": "coastal-buffer"}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .events import LogEvent, event_category


class StructuredLogger:
    """
    JSON logger over the stdlib logging module.

    Attributes:
        component: Component name (e.g. "tracker", "dispatcher")
        context: Metadata merged into every entry
        logger: Underlying stdlib logger ("marea.<component>")

    Thread Safety:
        Stateless after construction; emission goes through stdlib logging.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None
    ):
        self.component = component
        self.context: Dict[str, Any] = dict(context or {})
        self.logger = logging.getLogger(logger_name or f"marea.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Child logger sharing the stdlib logger, with extra context."""
        return StructuredLogger(
            component=self.component,
            level=self.logger.level,
            logger_name=self.logger.name,
            context={**self.context, **context},
        )

    def build_entry(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> Dict[str, Any]:
        """The JSON-ready document for one entry."""
        entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'component': self.component,
            'event': event.value,
            'category': event_category(event),
            'message': message,
        }

        merged = {**self.context, **(metadata or {})}
        if merged:
            entry['metadata'] = merged

        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return entry

    def _log(
        self,
        levelno: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(levelno):
            return
        entry = self.build_entry(
            logging.getLevelName(levelno), event, message, metadata, exc_info
        )
        # Tracebacks only for errors; warnings carry type + message
        self.logger.log(
            levelno,
            json.dumps(entry, default=str),
            exc_info=exc_info if levelno >= logging.ERROR else None
        )

    def debug(self, event: LogEvent, message: str,
              metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str,
             metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log a recoverable problem.

        Example:
            >>> logger.warning(
            ...     event=LogEvent.ZONE_GEOMETRY_INVALID,
            ...     message="Skipping zone with malformed geometry",
            ...     metadata={'zone_id': 'harbour'}
            ... )
        """
        self._log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log a failure, with traceback when exc_info is given.

        Example:
            >>> try:
            ...     deliver(contact, text)
            ... except AlertDeliveryError as e:
            ...     logger.error(
            ...         event=LogEvent.ALERT_DELIVERY_FAILED,
            ...         message="Failed to deliver SMS alert",
            ...         exc_info=e,
            ...         metadata={'vessel_id': '123456789'}
            ...     )
        """
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """Pass-through: StructuredLogger messages are already JSON."""

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def create_logger(
    component: str,
    level: int = logging.INFO,
    **context: Any
) -> StructuredLogger:
    """
    Factory for a configured StructuredLogger.

    Example:
        >>> logger = create_logger("dispatcher", level=logging.DEBUG)
        >>> ingest = create_logger("ingest", service_id="geofence-dz")
    """
    return StructuredLogger(component=component, level=level, context=context)
