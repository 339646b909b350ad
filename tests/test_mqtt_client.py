import logging
from types import SimpleNamespace
from unittest.mock import Mock

from rover_control import mqtt_client
from rover_control.client import RoverClient
from rover_control.config import ClientSettings, MqttSettings
from rover_control.mqtt_client import LastWill, MqttClient, encode
from rover_control.mqtt_topics import disconnects

NS = "test/v0"


def message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload)


def test_failing_handler_is_logged_and_others_still_run(caplog):
    m = MqttClient(client_id="t1", host="127.0.0.1", port=1883)
    seen = []

    def broken(topic, msg):
        raise RuntimeError("boom")

    m.add_handler(broken)
    m.add_handler(lambda topic, msg: seen.append((topic, msg)))

    with caplog.at_level(logging.ERROR):
        m._on_message(None, None, message("a/b", b'{"command": "forward"}'))

    assert seen == [("a/b", {"command": "forward"})]
    assert "handler failed" in caplog.text
    assert "boom" in caplog.text


def test_undecodable_payload_is_dropped():
    m = MqttClient(client_id="t2", host="127.0.0.1", port=1883)
    handler = Mock()
    m.add_handler(handler)

    m._on_message(None, None, message("a/b", b"\xff not json"))
    m._on_message(None, None, message("a/b", b'"just a string"'))

    handler.assert_not_called()


def test_last_will_is_registered(monkeypatch):
    paho_client = Mock()
    monkeypatch.setattr(mqtt_client.mqtt, "Client", Mock(return_value=paho_client))

    MqttClient(client_id="t3", host="127.0.0.1", port=1883, will=LastWill("x/y", {"client_id": "t3"}))

    paho_client.will_set.assert_called_once_with("x/y", payload=encode({"client_id": "t3"}), qos=1)


def test_rover_client_will_points_at_disconnects_topic(monkeypatch):
    paho_client = Mock()
    monkeypatch.setattr(mqtt_client.mqtt, "Client", Mock(return_value=paho_client))

    client = RoverClient.connect(ClientSettings(client_id="c1", mqtt=MqttSettings(namespace=NS)))

    paho_client.will_set.assert_called_once_with(disconnects(NS), payload=encode({"client_id": "c1"}), qos=1)
    paho_client.connect.assert_called_once_with("127.0.0.1", 1883, keepalive=30)
    assert client.client_id == "c1"
