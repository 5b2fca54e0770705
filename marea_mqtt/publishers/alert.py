"""
Alert Publisher
===============

Bounded Context: Alert Record Mirroring

Mirrors alert records to the alert topic once the SMS has been delivered.
Publishing is best effort: the alert log stays the record of truth.
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import AlertMessage
from ..logging import StructuredLogger, LogEvent


class AlertPublisher(BasePublisher):
    """Publisher for alert record messages."""

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "marea_alert_publisher",
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

    def format_message(self, alert_msg: AlertMessage) -> Dict[str, Any]:
        try:
            return alert_msg.to_dict()
        except (AttributeError, TypeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize alert message",
                exc_info=e
            )
            raise ValueError(f"Failed to format alert message: {e}") from e

    def publish_alert(self, alert_msg: AlertMessage) -> bool:
        """Publish one alert message. Returns True on success."""
        try:
            message_data = self.format_message(alert_msg)
        except ValueError:
            return False

        success = self.publish(message_data)
        if success:
            self.logger.info(
                event=LogEvent.ALERT_PUBLISHED,
                message="Mirrored alert record",
                metadata={
                    'record_id': alert_msg.record_id,
                    'vessel_id': alert_msg.vessel_id,
                    'alert_type': alert_msg.alert_type
                }
            )
        return success
