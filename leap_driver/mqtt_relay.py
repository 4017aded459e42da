"""
MQTT relay for Leap Motion events.

Handles:
- Subscribing to a driver's hand/gesture (and optionally frame) events
- Publishing each event as JSON to <prefix>/hand, <prefix>/gesture and
  <prefix>/message
"""

import dataclasses
import json
import logging
import time
from typing import Any, Callable, List, Optional

import paho.mqtt.client as mqtt

from .driver import LeapMotionDriver
from .events import Subscription, Topic

logger = logging.getLogger(__name__)


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)


class MqttRelay:
    """
    Republishes driver events to an MQTT broker.

    Publishing is fire-and-forget (QoS 0); paho queues the message and its
    network thread sends it, so relaying does not hold up the receive loop.
    """

    def __init__(
        self,
        driver: LeapMotionDriver,
        host: str = "localhost",
        port: int = 1883,
        topic_prefix: str = "leap",
        publish_frames: bool = False,
        connect_timeout: float = 5.0,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize the relay.

        Args:
            driver: Driver whose events are relayed
            host: MQTT broker host
            port: MQTT broker port
            topic_prefix: Prefix of the MQTT topics
            publish_frames: Also relay whole frames on <prefix>/message
            connect_timeout: Seconds to wait for the broker to accept
            client_factory: Builds the MQTT client from a client id
        """
        self.driver = driver
        self.host = host
        self.port = port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.publish_frames = publish_frames
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or _default_client_factory

        # MQTT client
        self._client = None
        self._connected = False
        self._running = False
        self._subscriptions: List[Subscription] = []

        # Statistics
        self._messages_sent = 0
        self._messages_failed = 0
        self._last_send_time: Optional[float] = None

    def mqtt_topic(self, topic: Topic) -> str:
        """MQTT topic an event topic is relayed to."""
        return f"{self.topic_prefix}/{topic.value}"

    def start(self) -> bool:
        """
        Connect to the broker and start relaying.

        Returns:
            True if connected, False otherwise
        """
        if self._running:
            return True

        try:
            client_id = f"leap_driver_{self.driver.name}_{int(time.time())}"
            self._client = self._client_factory(client_id)
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect

            logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}")
            self._client.connect(self.host, self.port, keepalive=60)
            self._client.loop_start()
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            self._client = None
            return False

        self._running = True

        # Wait for connection
        deadline = time.monotonic() + self.connect_timeout
        while not self._connected and time.monotonic() < deadline:
            time.sleep(0.1)

        if not self._connected:
            logger.warning("MQTT connection timeout - relay disabled")
            self.stop()
            return False

        topics = [Topic.HAND, Topic.GESTURE]
        if self.publish_frames:
            topics.insert(0, Topic.MESSAGE)
        for topic in topics:
            self._subscriptions.append(
                self.driver.subscribe(topic, self._make_listener(topic))
            )
        logger.info(f"Relaying {[t.value for t in topics]} to {self.topic_prefix}/#")
        return True

    def stop(self) -> None:
        """Stop relaying and disconnect."""
        if not self._running:
            return
        self._running = False

        for subscription in self._subscriptions:
            self.driver.unregister(subscription)
        self._subscriptions.clear()

        if self._client:
            self._client.loop_stop()
            self._client.disconnect()
            self._client = None

        self._connected = False
        logger.info("MQTT relay stopped")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """MQTT connection callback."""
        if not reason_code.is_failure:
            self._connected = True
            logger.info("Connected to MQTT broker")
        else:
            logger.error(f"MQTT connection failed: {reason_code}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """MQTT disconnection callback."""
        self._connected = False
        if reason_code.is_failure:
            logger.warning(f"Unexpected MQTT disconnection: {reason_code}")
        else:
            logger.info("Disconnected from MQTT broker")

    def _make_listener(self, topic: Topic) -> Callable[[Any], None]:
        mqtt_topic = self.mqtt_topic(topic)

        def relay(value: Any) -> None:
            self.publish(mqtt_topic, dataclasses.asdict(value))

        relay.__name__ = f"relay_{topic.value}"
        return relay

    def publish(self, mqtt_topic: str, payload: dict) -> bool:
        """
        Publish one JSON payload.

        Returns:
            True if handed to the MQTT client
        """
        if not self._connected or not self._client:
            self._messages_failed += 1
            return False

        try:
            self._client.publish(mqtt_topic, json.dumps(payload), qos=0)
        except Exception as e:
            self._messages_failed += 1
            logger.error(f"Failed to publish to {mqtt_topic}: {e}")
            return False

        self._messages_sent += 1
        self._last_send_time = time.time()
        logger.debug(f"Published to {mqtt_topic}")
        return True

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    def get_stats(self) -> dict:
        """Get relay statistics."""
        return {
            "connected": self._connected,
            "messages_sent": self._messages_sent,
            "messages_failed": self._messages_failed,
            "last_send_time": self._last_send_time,
        }
