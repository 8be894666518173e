"""MQTT bridge - publishes device commands straight to the broker"""

import json
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

import paho.mqtt.client as mqtt

from .. import config
from .backend_bridge import CommandResult

logger = logging.getLogger(__name__)


class MqttBridge:
    """
    Broker bridge for devices running the ESP32 MQTT bridge firmware.

    Commands are published as {action, payload} JSON to
    {prefix}/{device_id}/command. Status reports arriving on
    {prefix}/{device_id}/status are kept per device.
    """

    def __init__(
        self,
        broker: Optional[str] = None,
        port: Optional[int] = None,
        topic_prefix: Optional[str] = None,
        client_id: Optional[str] = None,
        client: Optional[mqtt.Client] = None,
    ):
        self.broker = broker or config.MQTT_BROKER
        self.port = port or config.MQTT_PORT
        self.topic_prefix = topic_prefix or config.MQTT_TOPIC_PREFIX
        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id or config.MQTT_CLIENT_ID,
        )
        self.connected = False
        self.callbacks: Dict[str, Callable[[str, Any], None]] = {}
        self._device_status: Dict[str, Any] = {}
        self._lock = threading.Lock()

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        if config.MQTT_USERNAME and config.MQTT_PASSWORD:
            self.client.username_pw_set(config.MQTT_USERNAME, config.MQTT_PASSWORD)

        self.register_callback(f"{self.topic_prefix}/+/status", self._handle_status)
        logger.info("MQTT bridge initialized")

    @property
    def is_authenticated(self) -> bool:
        return self.connected

    async def connect(self):
        """Connect to the MQTT broker; the network loop runs in paho's thread."""
        try:
            self.client.connect(self.broker, self.port, config.MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connecting to MQTT broker at {self.broker}:{self.port}")
        except OSError as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    async def disconnect(self):
        self.client.loop_stop()
        self.client.disconnect()
        self.connected = False
        logger.info("Disconnected from MQTT broker")

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return
        self.connected = True
        logger.info("Connected to MQTT broker successfully")
        for pattern in self.callbacks:
            self.client.subscribe(pattern)
            logger.info(f"Subscribed to {pattern}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self.connected = False
        if reason_code.is_failure:
            logger.warning(f"Unexpected MQTT disconnection ({reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")

    def _on_message(self, client, userdata, msg):
        topic = msg.topic
        try:
            payload = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, ValueError):
            payload = msg.payload.decode('utf-8', errors='replace')

        logger.debug(f"Received MQTT message - Topic: {topic}, Payload: {payload}")

        for topic_pattern, callback in self.callbacks.items():
            if self._topic_matches(topic, topic_pattern):
                try:
                    callback(topic, payload)
                except Exception as e:
                    logger.error(f"Error in callback for {topic}: {e}")

    def _handle_status(self, topic: str, payload: Any):
        device_id = topic.split('/')[-2]
        with self._lock:
            self._device_status[device_id] = payload

    def device_status(self, device_id: str) -> Optional[Any]:
        """Last status report received from a device, if any"""
        with self._lock:
            return self._device_status.get(device_id)

    def command_topic(self, device_id: str) -> str:
        return f"{self.topic_prefix}/{device_id}/command"

    def send_command(self, device_id: str, action: str, payload: Optional[Mapping] = None) -> CommandResult:
        if not self.connected:
            logger.warning("Cannot publish - MQTT not connected")
            return CommandResult(success=False, error="Not connected")

        body = {"action": action}
        if payload is not None:
            body["payload"] = dict(payload)

        topic = self.command_topic(device_id)
        info = self.client.publish(topic, json.dumps(body), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Publish to {topic} failed (rc: {info.rc})")
            return CommandResult(success=False, error=mqtt.error_string(info.rc))

        logger.debug(f"Published to {topic}: {body}")
        return CommandResult(success=True)

    def send_wled_state(self, device_id: str, state: Mapping) -> CommandResult:
        return self.send_command(device_id, "setState", state)

    def register_callback(self, topic_pattern: str, callback: Callable[[str, Any], None]):
        self.callbacks[topic_pattern] = callback
        if self.connected:
            self.client.subscribe(topic_pattern)
        logger.debug(f"Registered callback for {topic_pattern}")

    @staticmethod
    def _topic_matches(topic: str, pattern: str) -> bool:
        topic_parts = topic.split('/')
        pattern_parts = pattern.split('/')

        for i, pattern_part in enumerate(pattern_parts):
            if pattern_part == '#':
                return True
            if i >= len(topic_parts):
                return False
            if pattern_part != '+' and pattern_part != topic_parts[i]:
                return False

        return len(topic_parts) == len(pattern_parts)
