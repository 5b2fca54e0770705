"""
Zone Transition Publisher
=========================

Bounded Context: Zone Transition Message Production

Design:
- Inherits from BasePublisher (connection management)
- Formats ZoneTransitionMessage to JSON
- Empty messages are not published

Message Flow:
    GeofenceService → ZoneTransitionMessage → ZoneTransitionPublisher → MQTT Broker

Example:
    >>> publisher = ZoneTransitionPublisher(
    ...     broker_host="localhost",
    ...     topic="marea/geofence-dz/transitions",
    ...     logger=create_logger("processor")
    ... )
    >>> publisher.connect()
    >>> publisher.publish_transitions(msg)
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import ZoneTransitionMessage
from ..logging import StructuredLogger, LogEvent


class ZoneTransitionPublisher(BasePublisher):
    """Publisher for zone transition messages."""

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "marea_transition_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        ack_timeout: Optional[float] = 5.0
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos,
            ack_timeout=ack_timeout
        )
        self.schema_version = "1.0"

    def format_message(self, transition_msg: ZoneTransitionMessage) -> Dict[str, Any]:
        """
        Format ZoneTransitionMessage to JSON-compatible dict.

        Raises:
            ValueError: If transition_msg cannot be serialized
        """
        try:
            formatted = transition_msg.to_dict()
        except (AttributeError, TypeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize zone transition message",
                exc_info=e
            )
            raise ValueError(f"Failed to format zone transition message: {e}") from e

        self.logger.debug(
            event=LogEvent.ZONE_EVENT_SERIALIZED,
            message="Serialized zone transition message",
            metadata={
                'service_id': transition_msg.service_id,
                'transition_count': transition_msg.transition_count
            }
        )
        return formatted

    def publish_transitions(self, transition_msg: ZoneTransitionMessage) -> bool:
        """
        Publish zone transition message to MQTT broker.

        Returns:
            True if published (or nothing to publish), False otherwise
        """
        if transition_msg.transition_count == 0:
            return True

        try:
            message_data = self.format_message(transition_msg)
        except ValueError:
            return False

        success = self.publish(message_data)
        if success:
            self.logger.info(
                event=LogEvent.ZONE_EVENT_PUBLISHED,
                message=f"Published {transition_msg.transition_count} zone transitions",
                metadata={
                    'topic': self.topic,
                    'vessel_ids': sorted({t.vessel_id for t in transition_msg.transitions})
                }
            )
        return success
