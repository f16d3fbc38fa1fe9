"""Tests for the bundled tools' recovery from an unanswered request."""

import concurrent.futures
from types import SimpleNamespace

import pytest

from conftest import FakeTransport
from nut_client import NutClient, Status

import nut_dashboard


class AutoReplyTransport(FakeTransport):
    """Answers selected lines straight away and leaves the rest unanswered."""

    def __init__(self, replies):
        super().__init__()
        self.replies = replies

    def write(self, data):
        super().write(data)
        reply = self.replies.get(data)
        if reply is not None:
            self.deliver(reply)


class RecordingMQTT:
    def __init__(self):
        self.published = []

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload))


def test_dashboard_reconnects_after_timeout(client, transport):
    with pytest.raises(concurrent.futures.TimeoutError):
        nut_dashboard.fetch_vars(client, "ups1", timeout=0.05)
    assert transport.writes == ["LIST VAR ups1\n", "LOGOUT\n"]
    assert client.connected
    assert client.status is Status.IDLE

    # the next poll is not rejected as busy
    client.list_vars("ups1")
    assert transport.writes[-1] == "LIST VAR ups1\n"


def test_dashboard_fetch_vars():
    transport = AutoReplyTransport({
        "LIST VAR ups1\n": 'BEGIN LIST VAR ups1\nVAR ups1 ups.status "OL"\nEND LIST VAR ups1\n',
    })
    client = NutClient("upsd.test")
    client._attach(transport)
    client.connect()
    assert nut_dashboard.fetch_vars(client, "ups1", timeout=1) == {"ups.status": "OL"}
    assert transport.writes == ["LIST VAR ups1\n"]


def test_format_val():
    assert nut_dashboard.format_val("battery.runtime", "125") == "2 min 5 s"
    assert nut_dashboard.format_val("ups.status", "OL CHRG") == "OL CHRG (online, charging)"
    assert nut_dashboard.format_val("ups.load", "23") == "23 %"
    assert nut_dashboard.format_val("ups.load", None) == "-"


def test_bridge_reconnects_and_logs_in_after_unanswered_command(monkeypatch):
    pytest.importorskip("paho.mqtt.client")
    import mqtt_bridge

    monkeypatch.setattr(mqtt_bridge, "REQUEST_TIMEOUT", 0.05)
    bridge = mqtt_bridge.NutMQTTBridge("ups1", username="admin", password="secret")
    transport = AutoReplyTransport({"USERNAME admin\n": "OK\n", "PASSWORD secret\n": "OK\n"})
    bridge.nut._attach(transport)
    bridge.client = RecordingMQTT()
    bridge.nut.connect()

    message = SimpleNamespace(topic=bridge.command_topic, payload=b"beeper.mute")
    bridge.on_message(None, None, message)

    assert transport.writes == [
        "INSTCMD ups1 beeper.mute\n",
        "LOGOUT\n",
        "USERNAME admin\n",
        "PASSWORD secret\n",
    ]
    assert bridge.nut.connected
    assert bridge.nut.status is Status.IDLE
    availability = [payload for topic, payload in bridge.client.published if topic == bridge.availability_topic]
    assert availability == ["online", "offline", "online"]
