from __future__ import annotations

# Rover control server.
#
# This file contains the transport side of the arbiter:
# 1) `ControlService`: routes decoded client messages to the `AccessBroker`
#    and publishes grants + status over MQTT
# 2) `main()`: wiring for a real process (MQTT client, rover, service)
#
# The broker itself lives in broker.py and knows nothing about MQTT.

import argparse
import logging
import threading
import time
from typing import Any, TYPE_CHECKING

from . import protocol
from .broker import AccessBroker
from .config import MqttSettings, ServerSettings, add_logging_args, add_mqtt_args, configure_logging
from .errors import ErrorResponse
from .mqtt_topics import client_replies, control_requests, disconnects, status_updates
from .registry import Participant
from .rover import Rover, SimulatedPins, dispatch_command

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)


class ControlService:
    """MQTT adapter around the AccessBroker.

    A participant is whatever `client_id` a message carries. MQTT does not
    tell us which connection published it, so the id is not tied to the
    sender: any publisher on the requests topic can speak for any client id.
    """

    def __init__(self, *, mqtt: MqttClient, rover: Rover, settings: ServerSettings | None = None) -> None:
        self.mqtt = mqtt
        self.settings = settings or ServerSettings()
        self.namespace = self.settings.mqtt.namespace

        on_reject = self._send_rejection if self.settings.report_rejections else None
        self.broker: AccessBroker[Rover] = AccessBroker(rover, dispatch_command, self._grant, on_reject=on_reject)

        # Broker calls come from the MQTT loop thread; status snapshots come
        # from the publisher thread.
        self._lock = threading.Lock()

        self._stop_event = threading.Event()
        self._status_thread: threading.Thread | None = None

    def start(self) -> None:
        self.mqtt.subscribe(control_requests(self.namespace), qos=1)
        self.mqtt.subscribe(disconnects(self.namespace), qos=1)
        self.mqtt.add_handler(self._handle_message)

        # Periodic publisher for observers.
        self._status_thread = threading.Thread(
            target=self._status_publisher_loop,
            args=(self.settings.publish_status_every,),
            name="status-publisher",
            daemon=True,
        )
        self._status_thread.start()

    def stop(self) -> None:
        """Stop background threads. Call before disconnecting MQTT."""
        self._stop_event.set()
        t = self._status_thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    # -------------------- routing --------------------

    def handle(self, envelope: protocol.Envelope) -> None:
        """Route one client message to the broker."""
        cmd = envelope.command
        who = envelope.participant

        with self._lock:
            if cmd == protocol.CMD_REQUEST_CONTROL:
                self.broker.register(who)
            elif cmd == protocol.CMD_CEDE_CONTROL:
                self._cede(who)
            else:
                self.broker.submit_command(cmd, who)

    def disconnect(self, participant: Participant | None) -> None:
        """The client's connection is gone: drop it from the line."""
        if participant is None:
            logger.warning("disconnect notice without client_id")
            return
        logger.info("closing connection to %s", participant)
        with self._lock:
            self.broker.unregister(participant)

    def status(self) -> dict[str, Any]:
        with self._lock:
            waiting = self.broker.registry.waiting()
        return {
            "type": "status",
            "in_control": waiting[0] if waiting else None,
            "waiting": list(waiting[1:]),
            "queue_len": len(waiting),
            "ts": time.time(),
        }

    def _cede(self, participant: Participant | None) -> None:
        if participant is None:
            logger.warning("cede-control without client_id")
            return
        # Tell the holder it is done before the next one is granted control.
        try:
            if self.broker.holder() == participant:
                self._send(participant, {"command": protocol.CMD_END_CONTROL})
        finally:
            self.broker.unregister(participant)

    # -------------------- outbound --------------------

    def _send(self, participant: Participant, message: dict[str, Any]) -> None:
        topic = client_replies(str(participant), self.namespace)
        try:
            self.mqtt.publish(topic, message, qos=1)
        except ValueError:
            # paho rejects topics it cannot publish to.
            logger.exception("could not send %s to %s", message.get("command"), participant)

    def _grant(self, participant: Participant) -> None:
        logger.info("granting control to %s", participant)
        self._send(participant, {"command": protocol.CMD_BEGIN_CONTROL})

    def _send_rejection(self, participant: Participant | None, error: ErrorResponse) -> None:
        if participant is None:
            return
        self._send(participant, error.to_message())

    def _status_publisher_loop(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.mqtt.publish(status_updates(self.namespace), self.status())
            except Exception:
                logger.exception("status publish failed")
            self._stop_event.wait(interval)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        if topic == disconnects(self.namespace):
            self.disconnect(protocol.client_id_or_none(msg.get("client_id")))
            return

        if topic == control_requests(self.namespace):
            envelope = protocol.decode_envelope(msg)
            logger.debug("received message %s from %s: %s", envelope.message_id, envelope.participant, envelope.command)
            self.handle(envelope)


def main() -> None:
    # Import MQTT dependencies only when running the real service.
    from .mqtt_client import MqttClient

    parser = argparse.ArgumentParser(description="Rover control server (MQTT)")
    add_mqtt_args(parser)
    add_logging_args(parser)
    parser.add_argument(
        "--publish-status-every",
        type=float,
        default=2.0,
        help="seconds between broadcast status updates",
    )
    parser.add_argument(
        "--report-rejections",
        action="store_true",
        help="reply with an error message to clients whose commands are dropped",
    )
    args = parser.parse_args()
    configure_logging(args.log_level)

    settings = ServerSettings(
        mqtt=MqttSettings.from_args(args),
        publish_status_every=args.publish_status_every,
        report_rejections=args.report_rejections,
    )

    rover = Rover(SimulatedPins())
    rover.start()

    mqtt_client = MqttClient(
        client_id=f"rover-server-{settings.mqtt.namespace.replace('/', '-')}",
        host=settings.mqtt.host,
        port=settings.mqtt.port,
        keepalive=settings.mqtt.keepalive,
    )
    mqtt_client.start()

    service = ControlService(mqtt=mqtt_client, rover=rover, settings=settings)
    service.start()

    print(f"[server] connected to MQTT {settings.mqtt.host}:{settings.mqtt.port}, namespace={settings.mqtt.namespace}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        mqtt_client.stop()
        rover.stop()


if __name__ == "__main__":
    main()
