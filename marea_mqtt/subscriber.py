"""
MQTT Position Subscriber
========================

Bounded Context: Message Consumption

This module provides the subscriber receiving position batches from the
MQTT broker (e.g. forwarded by an external AIS gateway).

Design:
- Thread-safe message consumption
- Callback-based architecture
- Payload normalised to PositionBatchMessage, reports passed on raw
- Reconnection handled by paho-mqtt's network loop

Message Flow:
    1. Subscriber receives JSON from MQTT
    2. Normalises to PositionBatchMessage
    3. Invokes user callback with the batch
    4. Continues listening (non-blocking)

Example:
    >>> def on_batch(batch: PositionBatchMessage):
    ...     service.process_batch(batch.positions)
    >>>
    >>> subscriber = PositionSubscriber(
    ...     broker_host="localhost",
    ...     position_topic="marea/geofence-dz/positions",
    ...     on_positions=on_batch,
    ...     logger=create_logger("subscriber")
    ... )
    >>> subscriber.connect()
    >>> subscriber.start()
    >>> subscriber.stop()

Callbacks run in the MQTT network thread. Keep them fast or hand the
batch to a worker.
"""

import json
import threading
from typing import Any, Callable, Dict, Optional
import paho.mqtt.client as mqtt

from .schemas import PositionBatchMessage
from .logging import StructuredLogger, LogEvent


class PositionSubscriber:
    """
    MQTT subscriber for position batches.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        position_topic: Topic carrying position batches
        client_id: MQTT client identifier
        logger: Structured logger instance
        on_positions: Callback for each received batch
    """

    def __init__(
        self,
        broker_host: str,
        position_topic: str,
        on_positions: Callable[[PositionBatchMessage], None],
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "marea_position_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.position_topic = position_topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.on_positions = on_positions

        # MQTT client setup (paho-mqtt 2.x callback API)
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id
        )
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        # State
        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._batch_count = 0
        self._report_count = 0
        self._rejected_count = 0

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Subscribe on every (re)connect."""
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker ({reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        client.subscribe(self.position_topic, qos=self.qos)
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker and subscribed to position topic",
            metadata={'broker': self.broker, 'position_topic': self.position_topic}
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        """Decode JSON and hand the batch to the user callback."""
        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._count_rejected()
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        self.handle_payload(data)

    def handle_payload(self, data: Any) -> Optional[PositionBatchMessage]:
        """
        Normalise one decoded payload and invoke the callback.

        Returns:
            The batch passed to the callback, or None if rejected
        """
        try:
            batch = PositionBatchMessage.from_payload(data)
        except ValueError as e:
            self._count_rejected()
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Position payload failed schema validation",
                exc_info=e
            )
            return None

        with self._stats_lock:
            self._batch_count += 1
            self._report_count += batch.position_count

        self.logger.info(
            event=LogEvent.POSITION_BATCH_RECEIVED,
            message="Received position batch",
            metadata={'position_count': batch.position_count, 'source': batch.source}
        )

        try:
            self.on_positions(batch)
        except Exception as e:
            # Keep the network thread alive whatever the callback does
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Position callback raised",
                exc_info=e
            )
        return batch

    def _count_rejected(self) -> None:
        with self._stats_lock:
            self._rejected_count += 1

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout}
            )
            self.client.loop_stop()
            return False

        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

    def start(self) -> None:
        """Mark the subscriber as listening. Callbacks run in the MQTT thread."""
        if not self._connected.is_set():
            self.logger.warning(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Cannot start: not connected to broker"
            )
            return

        self._running = True
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Subscriber started (listening for positions)",
            metadata={'position_topic': self.position_topic}
        )

    def stop(self) -> None:
        """Stop subscriber loop and disconnect."""
        self._running = False
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'batches_received': self._batch_count,
                'reports_received': self._report_count,
                'payloads_rejected': self._rejected_count,
                'connected': self._connected.is_set(),
                'running': self._running,
                'position_topic': self.position_topic,
                'broker': self.broker
            }
