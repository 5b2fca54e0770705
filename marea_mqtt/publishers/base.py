"""
Base MQTT Publisher
===================

Connection lifecycle and confirmed publication for the marea publishers.

Transitions and alert records are low-volume and must not vanish silently,
so publication defaults to QoS 1 and, when ack_timeout is set, waits for the
broker's PUBACK before reporting success. A False return always means the
broker did not confirm the message.

    BasePublisher (abstract)
        ├── ZoneTransitionPublisher
        └── AlertPublisher

Subclasses only implement format_message().
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from ..logging import LogEvent, StructuredLogger

RECONNECT_MIN_DELAY = 1
RECONNECT_MAX_DELAY = 30


class BasePublisher(ABC):
    """
    Abstract MQTT publisher.

    Attributes:
        topic: Topic to publish to
        qos: Quality of Service (default 1, at-least-once)
        ack_timeout: Seconds to wait for PUBACK (None: do not wait)

    Thread Safety:
        publish() may be called from several threads; paho's network loop
        runs in its own thread (loop_start) and reconnects on its own.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        ack_timeout: Optional[float] = 5.0
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger.bind(topic=topic)
        self.qos = qos
        self.ack_timeout = ack_timeout

        # paho-mqtt 2.x callback API
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id
        )
        if username and password:
            self.client.username_pw_set(username, password)
        self.client.reconnect_delay_set(RECONNECT_MIN_DELAY, RECONNECT_MAX_DELAY)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._stats_lock = threading.Lock()
        self._published = 0
        self._failed = 0
        self._last_error: Optional[str] = None

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={'broker': self.broker, 'client_id': self.client_id,
                      'session_present': getattr(flags, 'session_present', None)}
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker, paho will reconnect",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop.

        Returns:
            True once the broker accepted the connection within timeout
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Connection timeout",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """
        Build the JSON-ready payload.

        Raises:
            ValueError: If the message cannot be represented
        """
        raise NotImplementedError("Subclasses must implement format_message()")

    def publish(self, message_data: Dict[str, Any], retain: bool = False) -> bool:
        """
        Publish a formatted payload.

        Returns:
            True if the broker accepted it (confirmed, when ack_timeout is
            set and qos > 0), False otherwise
        """
        if not self._connected.is_set():
            return self._fail("Not connected to broker")

        try:
            payload = json.dumps(message_data)
        except (TypeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Message is not JSON serializable",
                exc_info=e
            )
            return self._fail(f"Serialization failed: {e}")

        info = self.client.publish(
            topic=self.topic,
            payload=payload,
            qos=self.qos,
            retain=retain
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            return self._fail(f"Publish rejected (rc={info.rc})")

        if self.qos > 0 and self.ack_timeout is not None:
            try:
                info.wait_for_publish(timeout=self.ack_timeout)
            except (RuntimeError, ValueError) as e:
                return self._fail(f"Publish not confirmed: {e}")
            if not info.is_published():
                return self._fail(f"No PUBACK within {self.ack_timeout}s")

        with self._stats_lock:
            self._published += 1
            count = self._published

        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'message_count': count, 'qos': self.qos, 'bytes': len(payload)}
        )
        return True

    def _fail(self, reason: str) -> bool:
        with self._stats_lock:
            self._failed += 1
            self._last_error = reason
        self.logger.warning(
            event=LogEvent.MQTT_PUBLISH_FAILED,
            message=reason,
            metadata={'broker': self.broker}
        )
        return False

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'published': self._published,
                'failed': self._failed,
                'last_error': self._last_error,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker,
            }
