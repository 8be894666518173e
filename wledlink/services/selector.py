"""
Transport selection - picks which transport serves the current device.

Priority:
    demo mode             -> SimulatedTransport
    no device host        -> None
    LOCAL connectivity    -> LocalTransport
    REMOTE + remote access enabled:
        broker relay preferred and bridge authenticated -> BrokerRelayTransport
        user id and controller id known                 -> RelayQueueTransport
    OFFLINE               -> None
    anything else         -> LocalTransport
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .. import config
from ..transports.base import DeviceTransport
from ..transports.broker_relay import BrokerRelayTransport
from ..transports.local import LocalTransport
from ..transports.relay_queue import RelayQueueTransport
from ..transports.simulated import SimulatedTransport, SIMULATED_HOSTS
from ..transports.stream import StreamTransport

logger = logging.getLogger(__name__)


class ConnectivityStatus(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    OFFLINE = "offline"


@dataclass
class RemoteAccessSettings:
    """User settings that decide how a device is reached away from home"""
    enabled: bool = False
    prefer_broker_relay: bool = False
    user_id: Optional[str] = None
    controller_id: Optional[str] = None
    controller_ip: str = ""
    webhook_url: str = ""


class TransportSelector:
    """
    Chooses the transport for one device and fronts it.

    One instance is cached per transport kind; when the inputs for a kind
    change (new host, other controller) the old instance is closed and
    replaced. The write methods here are skipped while a pixel stream is
    active so JSON updates never fight the stream for the device.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        connectivity: ConnectivityStatus = ConnectivityStatus.LOCAL,
        remote: Optional[RemoteAccessSettings] = None,
        demo: Optional[bool] = None,
        bridge=None,
        firebase=None,
    ):
        """
        Args:
            host: device IP/hostname on the local network
            connectivity: current network situation
            remote: remote access settings
            demo: force the simulated device (defaults to SIMULATE_DEVICES)
            bridge: broker bridge for BrokerRelayTransport
            firebase: FirebaseService providing the relay's Firestore client
        """
        self.host = host
        self.connectivity = connectivity
        self.remote = remote or RemoteAccessSettings()
        self.demo = config.SIMULATE_DEVICES if demo is None else demo
        self.bridge = bridge
        self.firebase = firebase
        self.stream: Optional[StreamTransport] = None
        self._instances: Dict[str, Tuple[tuple, DeviceTransport]] = {}

    @property
    def stream_active(self) -> bool:
        return self.stream is not None and self.stream.is_active

    def update(self, **changes):
        """Change selection inputs (host, connectivity, remote, demo, bridge)."""
        for name, value in changes.items():
            if name not in ("host", "connectivity", "remote", "demo", "bridge"):
                raise TypeError(f"Unknown selector setting: {name}")
            setattr(self, name, value)

    async def _cached(self, kind: str, key: tuple, factory) -> DeviceTransport:
        cached = self._instances.get(kind)
        if cached is not None:
            cached_key, transport = cached
            if cached_key == key:
                return transport
            logger.info(f"Replacing {kind} transport")
            await transport.close()

        transport = factory()
        self._instances[kind] = (key, transport)
        return transport

    async def _local(self) -> DeviceTransport:
        if self.host in SIMULATED_HOSTS:
            return await self._cached("simulated", (), SimulatedTransport)
        return await self._cached("local", (self.host,), lambda: LocalTransport(self.host))

    async def _remote(self) -> Optional[DeviceTransport]:
        remote = self.remote
        if (
            remote.prefer_broker_relay
            and self.bridge is not None
            and self.bridge.is_authenticated
            and remote.controller_id
        ):
            return await self._cached(
                "broker",
                (id(self.bridge), remote.controller_id),
                lambda: BrokerRelayTransport(self.bridge, remote.controller_id),
            )

        if remote.user_id and remote.controller_id:
            key = (remote.user_id, remote.controller_id, remote.controller_ip, remote.webhook_url)
            try:
                return await self._cached("relay", key, lambda: RelayQueueTransport(
                    user_id=remote.user_id,
                    controller_id=remote.controller_id,
                    controller_ip=remote.controller_ip,
                    webhook_url=remote.webhook_url,
                    firestore_client=self.firebase.async_client() if self.firebase else None,
                ))
            except Exception as e:
                logger.error(f"Cannot create relay transport: {e}", exc_info=True)
                return None

        logger.warning("Remote access enabled but no user/controller id configured")
        return None

    async def select(self) -> Optional[DeviceTransport]:
        """Return the transport for the current situation, or None."""
        if self.demo:
            return await self._cached("simulated", (), SimulatedTransport)

        if not self.host:
            return None

        if self.connectivity == ConnectivityStatus.LOCAL:
            return await self._local()

        if self.connectivity == ConnectivityStatus.REMOTE and self.remote.enabled:
            return await self._remote()

        if self.connectivity == ConnectivityStatus.OFFLINE:
            return None

        # Remote without remote access: try the local path anyway
        return await self._local()

    # ------------------------------------------------------------------
    # Facade
    # ------------------------------------------------------------------

    def _skip_for_stream(self, operation: str) -> bool:
        if self.stream_active:
            logger.info(f"Skipping {operation} because a pixel stream is active")
            return True
        return False

    async def get_state(self) -> Optional[dict]:
        transport = await self.select()
        return await transport.get_state() if transport else None

    async def set_state(self, **fields) -> bool:
        if self._skip_for_stream("set_state"):
            return False
        transport = await self.select()
        return await transport.set_state(**fields) if transport else False

    async def apply_json(self, payload: Mapping) -> bool:
        if self._skip_for_stream("apply_json"):
            return False
        transport = await self.select()
        return await transport.apply_json(payload) if transport else False

    async def apply_to_segments(self, ids: Sequence[int], **fields) -> bool:
        if self._skip_for_stream("apply_to_segments"):
            return False
        transport = await self.select()
        return await transport.apply_to_segments(ids, **fields) if transport else False

    async def load_preset(self, preset_id: int) -> bool:
        if self._skip_for_stream("load_preset"):
            return False
        transport = await self.select()
        return await transport.load_preset(preset_id) if transport else False

    async def supports_rgbw(self) -> bool:
        transport = await self.select()
        return await transport.supports_rgbw() if transport else False

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def start_stream(self, generator=None, rgbw: bool = False) -> Optional[StreamTransport]:
        """Start (or restart) the pixel stream to the current host. None without a host."""
        if not self.host and not self.demo:
            logger.warning("Cannot start a stream without a device host")
            return None
        if self.stream is None or self.stream.host != self.host:
            if self.stream is not None:
                await self.stream.stop()
            self.stream = StreamTransport(self.host, simulate=self.demo or self.host in SIMULATED_HOSTS)
        await self.stream.start(generator, rgbw=rgbw)
        return self.stream

    async def stop_stream(self):
        if self.stream is not None:
            await self.stream.stop()

    async def close(self):
        await self.stop_stream()
        for _, transport in self._instances.values():
            await transport.close()
        self._instances.clear()
