"""
Broker relay transport - fire-and-forget control through a broker bridge.

The bridge (backend HTTP API or direct MQTT) forwards commands to the
device; nothing comes back on this path. get_state() therefore only reports
what was recently sent, from a short-lived local cache.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional, Sequence

from .. import config
from ..utils.payload import (
    normalize_payload,
    build_state_payload,
    build_segments_payload,
    build_segment_config_payload,
    build_rename_payload,
    build_preset_payload,
    build_sync_receiver_payload,
    build_sync_sender_payloads,
    is_valid_preset_id,
)
from .base import DeviceTransport

logger = logging.getLogger(__name__)


class BrokerRelayTransport(DeviceTransport):
    """
    Args:
        bridge: BackendBridgeClient or MqttBridge (anything with
            is_authenticated, send_wled_state and send_command)
        device_id: broker-side device identifier
        cache_ttl: seconds a sent state is reported back by get_state()
    """

    kind = "broker"

    def __init__(self, bridge, device_id: str, cache_ttl: Optional[float] = None):
        self.bridge = bridge
        self.device_id = device_id
        self.cache_ttl = cache_ttl if cache_ttl is not None else config.BROKER_CACHE_TTL_S
        self._cached_state: Optional[Dict[str, Any]] = None
        self._cache_time = 0.0

        logger.info(f"Broker relay transport initialized (device: {device_id})")

    def _authenticated(self) -> bool:
        if not self.bridge.is_authenticated:
            logger.warning("Broker bridge not authenticated, command dropped")
            return False
        return True

    def _update_cache(self, payload: Mapping):
        state = dict(self._cached_state or {})
        state.update(payload)
        self._cached_state = state
        self._cache_time = time.monotonic()

    def _cache_fresh(self) -> bool:
        return self._cached_state is not None and time.monotonic() - self._cache_time < self.cache_ttl

    async def _send_state(self, payload: Mapping) -> bool:
        if not self._authenticated():
            return False
        result = await asyncio.to_thread(self.bridge.send_wled_state, self.device_id, payload)
        if not result.success:
            logger.warning(f"Broker state command failed: {result.error}")
            return False
        self._update_cache(payload)
        return True

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get_state(self) -> Optional[Dict[str, Any]]:
        # Unknown once the cache has expired
        if self._cache_fresh():
            return dict(self._cached_state)
        return None

    async def set_state(
        self,
        on: Optional[bool] = None,
        brightness: Optional[int] = None,
        speed: Optional[int] = None,
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        force_zero_white: bool = False,
    ) -> bool:
        payload = build_state_payload(
            on=on,
            brightness=brightness,
            speed=speed,
            color=color,
            white=white,
            force_zero_white=force_zero_white,
        )
        return await self._send_state(normalize_payload(payload))

    async def apply_json(self, payload: Mapping) -> bool:
        return await self._send_state(normalize_payload(payload))

    async def apply_config(self, cfg: Mapping) -> bool:
        if not self._authenticated():
            return False
        result = await asyncio.to_thread(self.bridge.send_command, self.device_id, "setConfig", cfg)
        if not result.success:
            logger.warning(f"Broker setConfig failed: {result.error}")
        return result.success

    async def rename_segment(self, segment_id: int, name: str) -> bool:
        return await self.apply_json(build_rename_payload(segment_id, name))

    async def apply_to_segments(
        self,
        ids: Sequence[int],
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        fx: Optional[int] = None,
        speed: Optional[int] = None,
        intensity: Optional[int] = None,
    ) -> bool:
        if not ids:
            return True
        payload = build_segments_payload(ids, color=color, white=white, fx=fx, speed=speed, intensity=intensity)
        return await self.apply_json(payload)

    async def update_segment_config(
        self,
        segment_id: int,
        start: Optional[int] = None,
        stop: Optional[int] = None,
    ) -> bool:
        payload = build_segment_config_payload(segment_id, start=start, stop=stop)
        if payload is None:
            return True
        return await self.apply_json(payload)

    async def save_preset(self, preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self.apply_json(build_preset_payload(preset_id, state, preset_name))

    async def load_preset(self, preset_id: int) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self.apply_json({"ps": preset_id})

    async def upload_led_map(self, json_content: str) -> bool:
        logger.info("LED map upload is not supported over the broker relay")
        return False

    async def configure_sync_receiver(self) -> bool:
        return await self.apply_config(build_sync_receiver_payload())

    async def configure_sync_sender(self, targets: Sequence[str] = (), ddp_port: Optional[int] = None) -> bool:
        all_ok = True
        for payload in build_sync_sender_payloads(targets, ddp_port):
            all_ok = await self.apply_config(payload) and all_ok
        return all_ok
