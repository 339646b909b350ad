"""Runtime settings and logging setup.

Settings are plain dataclasses filled from the command line. The MQTT
connection defaults can also come from the environment, which is handy when
the server runs under a service manager:

- ``ROVER_MQTT_HOST``
- ``ROVER_MQTT_PORT``
- ``ROVER_NAMESPACE``
- ``ROVER_LOG_LEVEL``

Explicit command line flags always win over the environment.
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .mqtt_topics import DEFAULT_NAMESPACE

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"

# Slightly longer than the longest motion, so a held control does not pile
# commands up in front of the rover.
DEFAULT_SEND_INTERVAL = 1.1


@dataclass(frozen=True)
class MqttSettings:
    host: str = "127.0.0.1"
    port: int = 1883
    namespace: str = DEFAULT_NAMESPACE
    keepalive: int = 30

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "MqttSettings":
        env = os.environ if env is None else env
        port = env.get("ROVER_MQTT_PORT")
        return cls(
            host=env.get("ROVER_MQTT_HOST") or cls.host,
            port=int(port) if port else cls.port,
            namespace=env.get("ROVER_NAMESPACE") or cls.namespace,
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "MqttSettings":
        return cls(host=args.mqtt_host, port=args.mqtt_port, namespace=args.namespace)


@dataclass(frozen=True)
class ServerSettings:
    mqtt: MqttSettings = field(default_factory=MqttSettings)
    publish_status_every: float = 2.0
    report_rejections: bool = False


@dataclass(frozen=True)
class ClientSettings:
    client_id: str
    mqtt: MqttSettings = field(default_factory=MqttSettings)
    send_interval: float = DEFAULT_SEND_INTERVAL
    grant_timeout: float = 30.0


def add_mqtt_args(p: argparse.ArgumentParser, env: Optional[Mapping[str, str]] = None) -> None:
    defaults = MqttSettings.from_env(env)
    p.add_argument("--mqtt-host", default=defaults.host)
    p.add_argument("--mqtt-port", type=int, default=defaults.port)
    p.add_argument("--namespace", default=defaults.namespace)


def add_logging_args(p: argparse.ArgumentParser, env: Optional[Mapping[str, str]] = None) -> None:
    env = os.environ if env is None else env
    p.add_argument(
        "--log-level",
        default=env.get("ROVER_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
