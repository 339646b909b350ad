from __future__ import annotations

# Driving client.
#
# A client is a short-lived process:
# - connect to the MQTT broker (with a last-will on the disconnects topic)
# - publish request-control
# - wait for begin-control
# - send movement commands, repeating each while it is "held"
# - publish cede-control and disconnect

import argparse
import logging
import threading
import time
import uuid
from typing import Any, Callable, Iterable, TYPE_CHECKING

from . import protocol
from .config import ClientSettings, MqttSettings, add_logging_args, add_mqtt_args, configure_logging, DEFAULT_SEND_INTERVAL
from .mqtt_topics import client_replies, control_requests, disconnects

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)


class RoverClient:
    """One participant competing for the rover."""

    def __init__(self, *, client_id: str, mqtt: MqttClient, namespace: str) -> None:
        self.client_id = client_id
        self.mqtt = mqtt
        self.namespace = namespace

        # Counter for messages we send
        self.message_id = 0

        self._granted = threading.Event()
        self.last_error: dict[str, Any] | None = None

    @classmethod
    def connect(cls, settings: ClientSettings) -> "RoverClient":
        """Open an MQTT connection whose last-will tells the server we are gone."""
        from .mqtt_client import LastWill, MqttClient

        ns = settings.mqtt.namespace
        mqtt = MqttClient(
            client_id=settings.client_id,
            host=settings.mqtt.host,
            port=settings.mqtt.port,
            keepalive=settings.mqtt.keepalive,
            will=LastWill(disconnects(ns), {"client_id": settings.client_id}),
        )
        mqtt.start()
        client = cls(client_id=settings.client_id, mqtt=mqtt, namespace=ns)
        client.start()
        return client

    @property
    def in_control(self) -> bool:
        return self._granted.is_set()

    def start(self) -> None:
        self.mqtt.subscribe(client_replies(self.client_id, self.namespace), qos=1)
        self.mqtt.add_handler(self._on_message)

    def stop(self) -> None:
        """Say goodbye explicitly, since a clean disconnect skips the last-will."""
        self.mqtt.publish(disconnects(self.namespace), {"client_id": self.client_id}, qos=1)
        self._granted.clear()
        self.mqtt.stop()

    def send(self, command: str) -> None:
        msg = protocol.encode_command(
            client_id=self.client_id,
            command=command,
            message_id=self.message_id,
            date_ms=int(time.time() * 1000),
        )
        logger.debug("sending command: %s", msg)
        self.mqtt.publish(control_requests(self.namespace), msg, qos=1)
        self.message_id += 1

    def request_control(self) -> None:
        self.send(protocol.CMD_REQUEST_CONTROL)

    def cede(self) -> None:
        """Tell the server we no longer want to control the rover."""
        self.send(protocol.CMD_CEDE_CONTROL)
        self._granted.clear()

    def wait_for_grant(self, timeout: float) -> None:
        if not self._granted.wait(timeout):
            raise TimeoutError(f"{self.client_id} was not granted control within {timeout:0.1f}s")

    def _on_message(self, topic: str, msg: dict[str, Any]) -> None:
        if topic != client_replies(self.client_id, self.namespace):
            return
        cmd = msg.get("command")
        if cmd == protocol.CMD_BEGIN_CONTROL:
            logger.info("time to drive!")
            self._granted.set()
        elif cmd == protocol.CMD_END_CONTROL:
            self._granted.clear()
        elif cmd == "error":
            self.last_error = msg
            logger.warning("server rejected a request: %s", msg.get("message"))
        else:
            logger.warning("received unknown command from server: %r", cmd)


def drive(
    client: RoverClient,
    commands: Iterable[str],
    *,
    hold_seconds: float = 0.0,
    send_interval: float = DEFAULT_SEND_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Send each command once, then keep re-sending it while it is held.

    Returns the number of messages sent.
    """
    # Holding for an exact multiple of the interval still gets the last re-send.
    repeats = int(hold_seconds / send_interval + 1e-9) if send_interval > 0 else 0

    sent = 0
    for cmd in commands:
        client.send(cmd)
        sent += 1
        for _ in range(repeats):
            sleep(send_interval)
            client.send(cmd)
            sent += 1
        sleep(send_interval)
    return sent


def main() -> None:
    parser = argparse.ArgumentParser(description="Rover driving client (MQTT)")
    add_mqtt_args(parser)
    add_logging_args(parser)
    parser.add_argument("--client-id", default=None, help="defaults to a random id")
    parser.add_argument(
        "--commands",
        default="forward",
        help="comma separated movement commands, e.g. forward,left,forward",
    )
    parser.add_argument("--hold-seconds", type=float, default=0.0, help="how long each command is held")
    parser.add_argument("--send-interval", type=float, default=DEFAULT_SEND_INTERVAL)
    parser.add_argument("--grant-timeout", type=float, default=30.0)
    args = parser.parse_args()
    configure_logging(args.log_level)

    settings = ClientSettings(
        client_id=args.client_id or f"driver-{uuid.uuid4().hex[:8]}",
        mqtt=MqttSettings.from_args(args),
        send_interval=args.send_interval,
        grant_timeout=args.grant_timeout,
    )
    commands = [c.strip() for c in args.commands.split(",") if c.strip()]

    client = RoverClient.connect(settings)
    print(f"[client {settings.client_id}] connected, requesting control")
    try:
        client.request_control()
        client.wait_for_grant(settings.grant_timeout)
        print(f"[client {settings.client_id}] in control, driving {commands}")
        drive(client, commands, hold_seconds=args.hold_seconds, send_interval=settings.send_interval)
        client.cede()
        print(f"[client {settings.client_id}] ceded control")
    except TimeoutError as e:
        print(f"[client {settings.client_id}] error: {e}")
    except KeyboardInterrupt:
        pass
    finally:
        client.stop()


if __name__ == "__main__":
    main()
