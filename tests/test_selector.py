"""Tests for transport selection and the stream-aware facade"""

from unittest.mock import MagicMock

import pytest

from wledlink.services.firebase_service import FirebaseService
from wledlink.services.selector import ConnectivityStatus, RemoteAccessSettings, TransportSelector
from wledlink.transports import (
    BrokerRelayTransport,
    LocalTransport,
    RelayQueueTransport,
    SimulatedTransport,
)


def remote_settings(**overrides):
    values = dict(enabled=True, user_id="user1", controller_id="ctl1")
    values.update(overrides)
    return RemoteAccessSettings(**values)


@pytest.fixture
def firebase():
    firebase = MagicMock()
    firebase.async_client.return_value = MagicMock()
    return firebase


@pytest.mark.asyncio
async def test_demo_mode_uses_simulated_device():
    selector = TransportSelector(host="192.168.1.9", demo=True)
    assert isinstance(await selector.select(), SimulatedTransport)


@pytest.mark.asyncio
async def test_no_host_means_no_transport():
    selector = TransportSelector(host=None, demo=False)
    assert await selector.select() is None


@pytest.mark.asyncio
async def test_local_connectivity():
    selector = TransportSelector(host="192.168.1.9", demo=False)
    transport = await selector.select()
    assert isinstance(transport, LocalTransport)
    assert transport.base_url == "http://192.168.1.9"
    assert await selector.select() is transport
    await selector.close()


@pytest.mark.asyncio
async def test_mock_host_is_simulated():
    selector = TransportSelector(host="mock", demo=False)
    assert isinstance(await selector.select(), SimulatedTransport)


@pytest.mark.asyncio
async def test_host_change_replaces_and_closes_instance():
    selector = TransportSelector(host="192.168.1.9", demo=False)
    first = await selector.select()
    first.close = MagicMock(wraps=first.close)

    selector.update(host="192.168.1.10")
    second = await selector.select()

    assert second is not first
    assert second.base_url == "http://192.168.1.10"
    first.close.assert_called_once()
    await selector.close()


@pytest.mark.asyncio
async def test_remote_uses_relay_queue(firebase):
    selector = TransportSelector(
        host="192.168.1.9",
        connectivity=ConnectivityStatus.REMOTE,
        remote=remote_settings(),
        demo=False,
        firebase=firebase,
    )
    transport = await selector.select()
    assert isinstance(transport, RelayQueueTransport)
    assert transport.user_id == "user1"
    assert transport.controller_id == "ctl1"


@pytest.mark.asyncio
async def test_remote_prefers_authenticated_broker(firebase):
    bridge = MagicMock()
    bridge.is_authenticated = True
    selector = TransportSelector(
        host="192.168.1.9",
        connectivity=ConnectivityStatus.REMOTE,
        remote=remote_settings(prefer_broker_relay=True),
        demo=False,
        bridge=bridge,
        firebase=firebase,
    )
    assert isinstance(await selector.select(), BrokerRelayTransport)

    bridge.is_authenticated = False
    assert isinstance(await selector.select(), RelayQueueTransport)


@pytest.mark.asyncio
async def test_remote_without_ids_has_no_transport():
    selector = TransportSelector(
        host="192.168.1.9",
        connectivity=ConnectivityStatus.REMOTE,
        remote=remote_settings(user_id=None),
        demo=False,
    )
    assert await selector.select() is None


@pytest.mark.asyncio
async def test_offline_has_no_transport():
    selector = TransportSelector(host="192.168.1.9", connectivity=ConnectivityStatus.OFFLINE, demo=False)
    assert await selector.select() is None


@pytest.mark.asyncio
async def test_remote_without_remote_access_falls_back_to_local():
    selector = TransportSelector(
        host="192.168.1.9",
        connectivity=ConnectivityStatus.REMOTE,
        remote=RemoteAccessSettings(enabled=False),
        demo=False,
    )
    assert isinstance(await selector.select(), LocalTransport)
    await selector.close()


def test_unknown_setting_rejected():
    selector = TransportSelector(demo=False)
    with pytest.raises(TypeError):
        selector.update(colour="red")


@pytest.mark.asyncio
async def test_writes_skipped_while_streaming():
    selector = TransportSelector(host="192.168.1.9", demo=True)
    device = await selector.select()

    await selector.start_stream()
    assert selector.stream_active
    assert await selector.set_state(brightness=10) is False
    assert await selector.apply_json({"bri": 10}) is False
    assert await selector.apply_to_segments([0], color=(1, 2, 3)) is False
    assert device.brightness == 180

    await selector.stop_stream()
    assert await selector.set_state(brightness=10) is True
    assert device.brightness == 10
    await selector.close()


@pytest.mark.asyncio
async def test_reads_allowed_while_streaming():
    selector = TransportSelector(host="192.168.1.9", demo=True)
    await selector.start_stream()
    state = await selector.get_state()
    assert state["bri"] == 180
    await selector.close()
    assert not selector.stream_active


@pytest.mark.asyncio
async def test_relay_setup_failure_means_no_transport(tmp_path):
    selector = TransportSelector(
        host="10.0.0.9",
        connectivity=ConnectivityStatus.REMOTE,
        remote=remote_settings(),
        demo=False,
        firebase=FirebaseService(credentials_path=str(tmp_path / "missing.json")),
    )
    assert await selector.select() is None
    assert await selector.set_state(on=True) is False
    assert await selector.get_state() is None
    assert await selector.supports_rgbw() is False


@pytest.mark.asyncio
async def test_stream_without_host_is_not_started():
    selector = TransportSelector(host=None, demo=False)
    assert await selector.start_stream() is None
    assert not selector.stream_active
    await selector.close()
