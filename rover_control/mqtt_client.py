"""Small MQTT helper built on top of paho-mqtt.

Why this exists:
- paho-mqtt is callback-based and speaks bytes.
- Both the server and the driving client want JSON dict messages, a list of
  handlers, and a last-will so the server notices clients that vanish.

Design:
- `MqttClient` manages connection + a background network loop.
- Handlers are called on the network-loop thread, one message at a time.
  The server relies on that to keep all broker calls on one thread of control.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class LastWill:
    topic: str
    message: dict[str, Any]


def encode(message: dict[str, Any]) -> bytes:
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def decode(raw: Any) -> dict[str, Any] | None:
    """Decode a payload into a JSON object, or None if it is not one."""
    try:
        payload = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else str(raw)
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
        will: LastWill | None = None,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self._client.on_message = self._on_message
        if will is not None:
            self._client.will_set(will.topic, payload=encode(will.message), qos=1)

        # External subscribers. Called with (topic, json_message).
        self._handlers: list[MessageHandler] = []
        self._started = False

    def start(self) -> None:
        """Connect and start the background network loop."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        """Stop and disconnect. A clean disconnect does not fire the last-will."""
        if not self._started:
            return
        self._client.disconnect()
        self._client.loop_stop()
        self._started = False

    def add_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self._client.subscribe(topic, qos=qos)

    def publish(self, topic: str, message: dict[str, Any], qos: int = 0) -> None:
        self._client.publish(topic, payload=encode(message), qos=qos)

    # -------------------- internal callbacks --------------------

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        data = decode(msg.payload)
        if data is None:
            logger.debug("dropping undecodable payload on %s", msg.topic)
            return

        for h in list(self._handlers):
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive; one bad message must not stop the server.
                logger.exception("handler failed for message on %s", msg.topic)
