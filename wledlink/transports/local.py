"""
Local transport - direct HTTP/JSON to a device on the same network.

Talks to the WLED JSON API:
    GET  /json/state   current state
    POST /json/state   state update
    POST /json/cfg     persistent configuration
    GET  /json/info    device info (LED count, RGBW support)
    POST /edit         file upload (ledmap.json)
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import requests

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


class LocalTransport(DeviceTransport):
    """Direct HTTP client for one device, using requests off the event loop"""

    kind = "local"

    def __init__(
        self,
        host: str,
        timeout: Optional[float] = None,
        config_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            host: device IP/hostname, or a base URL such as http://192.168.1.23
            timeout: timeout for state/info/upload requests (seconds)
            config_timeout: timeout for /json/cfg writes (seconds)
            session: requests session to use (owned and closed by this transport)
        """
        base = host if host.startswith(("http://", "https://")) else f"http://{host}"
        self.base_url = base.rstrip("/")
        self.host = host
        self.timeout = timeout or config.WLED_HTTP_TIMEOUT_S
        self.config_timeout = config_timeout or config.WLED_CONFIG_TIMEOUT_S
        self._session = session or requests.Session()
        self._supports_rgbw_cache: Optional[bool] = None

        logger.debug(f"Local transport initialized for {self.base_url}")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # ------------------------------------------------------------------
    # Blocking helpers (run via asyncio.to_thread)
    # ------------------------------------------------------------------

    def _get_json_sync(self, path: str, timeout: float) -> Optional[Dict[str, Any]]:
        try:
            response = self._session.get(
                self._url(path),
                headers={"Accept": "application/json"},
                timeout=timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"GET {path} failed for {self.host}: {e}")
            return None

        if not response.ok:
            logger.warning(f"GET {path} returned {response.status_code}: {response.text[:200]}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {self.host}{path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Unexpected response shape from {self.host}{path}: {type(data).__name__}")
            return None
        return data

    def _post_sync(self, path: str, timeout: float, **kwargs) -> bool:
        try:
            response = self._session.post(self._url(path), timeout=timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"POST {path} failed for {self.host}: {e}")
            return False

        if response.ok:
            logger.debug(f"POST {path} -> {response.status_code}")
            return True
        logger.warning(f"POST {path} returned {response.status_code}: {response.text[:200]}")
        return False

    async def _get_json(self, path: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_json_sync, path, timeout or self.timeout)

    async def _post_state(self, payload: Mapping) -> bool:
        logger.debug(f"POST /json/state to {self.host}: {payload}")
        return await asyncio.to_thread(self._post_sync, "/json/state", self.timeout, json=dict(payload))

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get_state(self) -> Optional[Dict[str, Any]]:
        return await self._get_json("/json/state")

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
        return await self._post_state(normalize_payload(payload))

    async def apply_json(self, payload: Mapping) -> bool:
        return await self._post_state(normalize_payload(payload))

    async def apply_config(self, cfg: Mapping) -> bool:
        logger.debug(f"POST /json/cfg to {self.host}: {cfg}")
        return await asyncio.to_thread(self._post_sync, "/json/cfg", self.config_timeout, json=dict(cfg))

    async def supports_rgbw(self) -> bool:
        if self._supports_rgbw_cache is not None:
            return self._supports_rgbw_cache

        info = await self._get_json("/json/info")
        rgbw = False
        if info is not None:
            leds = info.get("leds")
            if isinstance(leds, dict) and isinstance(leds.get("rgbw"), bool):
                rgbw = leds["rgbw"]
        self._supports_rgbw_cache = rgbw
        logger.info(f"Device {self.host} RGBW support: {rgbw}")
        return rgbw

    async def get_total_led_count(self) -> Optional[int]:
        info = await self._get_json("/json/info")
        if info is None:
            return None
        leds = info.get("leds")
        if isinstance(leds, dict):
            count = leds.get("count")
            if isinstance(count, (int, float)) and not isinstance(count, bool):
                return int(count)
        return None

    async def rename_segment(self, segment_id: int, name: str) -> bool:
        return await self._post_state(build_rename_payload(segment_id, name))

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
        return await self._post_state(payload)

    async def update_segment_config(
        self,
        segment_id: int,
        start: Optional[int] = None,
        stop: Optional[int] = None,
    ) -> bool:
        payload = build_segment_config_payload(segment_id, start=start, stop=stop)
        if payload is None:
            return True
        return await self._post_state(payload)

    async def save_preset(self, preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self._post_state(build_preset_payload(preset_id, state, preset_name))

    async def load_preset(self, preset_id: int) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self._post_state({"ps": preset_id})

    async def upload_led_map(self, json_content: str) -> bool:
        files = {"data": ("ledmap.json", json_content.encode("utf-8"), "application/json")}
        ok = await asyncio.to_thread(
            self._post_sync,
            "/edit",
            self.timeout,
            files=files,
            data={"path": "/ledmap.json"},
        )
        if ok:
            logger.info(f"Uploaded ledmap.json to {self.host}")
        return ok

    async def configure_sync_receiver(self) -> bool:
        ok = await self._post_state(build_sync_receiver_payload())
        if not ok:
            logger.warning(f"configure_sync_receiver failed for {self.host}")
        return ok

    async def configure_sync_sender(self, targets: Sequence[str] = (), ddp_port: Optional[int] = None) -> bool:
        all_ok = True
        for payload in build_sync_sender_payloads(targets, ddp_port):
            all_ok = await self._post_state(payload) and all_ok
        if not all_ok:
            logger.warning(f"configure_sync_sender had partial failure for {self.host}")
        return all_ok

    async def close(self):
        self._session.close()
        logger.debug(f"Local transport for {self.host} closed")
