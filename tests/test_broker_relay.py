"""Tests for the broker relay transport and its bridges"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeResponse
from wledlink.services.backend_bridge import BackendBridgeClient, CommandResult
from wledlink.services.mqtt_bridge import MqttBridge
from wledlink.transports.broker_relay import BrokerRelayTransport


@pytest.fixture
def bridge():
    bridge = MagicMock()
    bridge.is_authenticated = True
    bridge.send_wled_state.return_value = CommandResult(success=True)
    bridge.send_command.return_value = CommandResult(success=True)
    return bridge


@pytest.mark.asyncio
async def test_state_is_sent_and_cached(bridge):
    transport = BrokerRelayTransport(bridge, "dev1", cache_ttl=5.0)
    assert await transport.set_state(on=True, brightness=90) is True
    bridge.send_wled_state.assert_called_once_with("dev1", {"on": True, "bri": 90})

    assert await transport.get_state() == {"on": True, "bri": 90}
    await transport.set_state(brightness=20)
    assert await transport.get_state() == {"on": True, "bri": 20}


@pytest.mark.asyncio
async def test_cache_expiry_means_unknown(bridge):
    transport = BrokerRelayTransport(bridge, "dev1", cache_ttl=0.0)
    await transport.set_state(on=True)
    assert await transport.get_state() is None


@pytest.mark.asyncio
async def test_nothing_cached_before_first_send(bridge):
    transport = BrokerRelayTransport(bridge, "dev1")
    assert await transport.get_state() is None


@pytest.mark.asyncio
async def test_unauthenticated_fails_fast(bridge):
    bridge.is_authenticated = False
    transport = BrokerRelayTransport(bridge, "dev1")
    assert await transport.set_state(on=True) is False
    assert await transport.apply_config({"id": {"name": "x"}}) is False
    bridge.send_wled_state.assert_not_called()
    bridge.send_command.assert_not_called()


@pytest.mark.asyncio
async def test_failed_send_does_not_touch_cache(bridge):
    bridge.send_wled_state.return_value = CommandResult(success=False, error="HTTP 502")
    transport = BrokerRelayTransport(bridge, "dev1", cache_ttl=5.0)
    assert await transport.set_state(on=True) is False
    assert await transport.get_state() is None


@pytest.mark.asyncio
async def test_config_goes_through_set_config(bridge):
    transport = BrokerRelayTransport(bridge, "dev1")
    assert await transport.configure_sync_receiver() is True
    bridge.send_command.assert_called_once_with("dev1", "setConfig", {"udpn": {"recv": True}})


@pytest.mark.asyncio
async def test_capabilities_not_available(bridge):
    transport = BrokerRelayTransport(bridge, "dev1")
    assert await transport.upload_led_map("{}") is False
    assert await transport.supports_rgbw() is False
    assert await transport.get_total_led_count() is None


@pytest.mark.asyncio
async def test_segments_and_presets_use_state_path(bridge):
    transport = BrokerRelayTransport(bridge, "dev1")
    assert await transport.rename_segment(1, "Garage") is True
    assert await transport.load_preset(3) is True
    assert await transport.load_preset(0) is False
    sent = [c.args[1] for c in bridge.send_wled_state.call_args_list]
    assert sent == [{"seg": [{"id": 1, "n": "Garage"}]}, {"ps": 3}]


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def close(self):
        pass


def test_backend_bridge_posts_command():
    session = _Session(FakeResponse(200, {"queued": True}))
    client = BackendBridgeClient(base_url="https://api.example.test/", token="tok", session=session)

    result = client.send_wled_state("dev1", {"on": True})

    assert result.success
    assert result.data == {"queued": True}
    url, kwargs = session.calls[0]
    assert url == "https://api.example.test/api/devices/dev1/command"
    assert kwargs["json"] == {"action": "setState", "payload": {"on": True}}
    assert kwargs["headers"]["Authorization"] == "Bearer tok"


def test_backend_bridge_without_token():
    session = _Session(FakeResponse(200, {}))
    client = BackendBridgeClient(base_url="https://api.example.test", token="", session=session)
    assert not client.is_authenticated
    assert client.send_command("dev1", "setState", {}).success is False
    assert session.calls == []


def test_backend_bridge_errors():
    client = BackendBridgeClient(token="tok", session=_Session(error=requests.ConnectionError("down")))
    result = client.send_command("dev1", "setState")
    assert not result.success
    assert "down" in result.error

    client = BackendBridgeClient(token="tok", session=_Session(FakeResponse(403, {"error": "forbidden"})))
    result = client.send_command("dev1", "setState")
    assert result == CommandResult(success=False, error="forbidden")

    client = BackendBridgeClient(token="tok", session=_Session(FakeResponse(200, raw="<html>")))
    assert client.send_command("dev1", "setState").success is False


def test_backend_health():
    assert BackendBridgeClient(token="t", session=_Session(FakeResponse(200, {}))).check_health()
    assert not BackendBridgeClient(token="t", session=_Session(error=requests.Timeout())).check_health()


def make_mqtt_bridge():
    client = MagicMock()
    client.publish.return_value = MagicMock(rc=0)
    return MqttBridge(broker="broker.local", port=1883, topic_prefix="lumina", client=client), client


def test_mqtt_bridge_requires_connection():
    bridge, client = make_mqtt_bridge()
    assert not bridge.is_authenticated
    assert bridge.send_command("dev1", "setState", {"on": True}).success is False
    client.publish.assert_not_called()


def test_mqtt_bridge_publishes_command():
    bridge, client = make_mqtt_bridge()
    bridge.connected = True

    assert bridge.send_wled_state("dev1", {"bri": 5}).success

    topic, body = client.publish.call_args.args
    assert topic == "lumina/dev1/command"
    assert json.loads(body) == {"action": "setState", "payload": {"bri": 5}}


def test_mqtt_bridge_tracks_status_reports():
    bridge, _ = make_mqtt_bridge()
    msg = MagicMock()
    msg.topic = "lumina/dev1/status"
    msg.payload = b'{"online": true}'
    bridge._on_message(None, None, msg)
    assert bridge.device_status("dev1") == {"online": True}
    assert bridge.device_status("dev2") is None


def test_mqtt_topic_matching():
    assert MqttBridge._topic_matches("lumina/dev1/status", "lumina/+/status")
    assert MqttBridge._topic_matches("lumina/dev1/status", "lumina/#")
    assert not MqttBridge._topic_matches("lumina/dev1/command", "lumina/+/status")
    assert not MqttBridge._topic_matches("lumina/dev1", "lumina/+/status")
