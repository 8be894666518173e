"""In-memory device used for demo mode and local development"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import Segment
from ..utils.payload import (
    clamp_byte,
    normalize_payload,
    build_state_payload,
    build_segments_payload,
    is_valid_preset_id,
)
from .base import DeviceTransport

logger = logging.getLogger(__name__)

# Hosts that select the simulated device instead of a real one
SIMULATED_HOSTS = frozenset({"mock", "localhost", "127.0.0.1"})


class SimulatedTransport(DeviceTransport):
    """
    Applies payloads to a local state and always reports success.

    Behaves like an RGBW-capable device with three segments so the rest of
    the stack can be exercised without hardware.
    """

    kind = "simulated"

    def __init__(self, segment_names: Optional[Sequence[str]] = None, led_count: int = 150):
        self.on = True
        self.brightness = 180
        self.speed = 128
        self.color = [255, 255, 255]
        self.white = 0
        self.segment_names: List[str] = list(segment_names or ("Segment 0", "Segment 1", "Segment 2"))
        self.led_count = led_count
        self.presets: Dict[int, Dict[str, Any]] = {}
        self.config: Dict[str, Any] = {}
        self.last_led_map: Optional[str] = None

    async def get_state(self) -> Optional[Dict[str, Any]]:
        per_segment = self.led_count // max(1, len(self.segment_names))
        return {
            "on": self.on,
            "bri": self.brightness,
            "seg": [
                {
                    "id": i,
                    "n": name,
                    "start": i * per_segment,
                    "stop": (i + 1) * per_segment,
                    "sx": self.speed,
                    "col": [self.color + [self.white]],
                }
                for i, name in enumerate(self.segment_names)
            ],
        }

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
        return await self.apply_json(payload)

    async def apply_json(self, payload: Mapping) -> bool:
        payload = normalize_payload(payload)
        if isinstance(payload.get("on"), bool):
            self.on = payload["on"]
        bri = payload.get("bri")
        if isinstance(bri, int) and not isinstance(bri, bool):
            self.brightness = clamp_byte(bri)

        if "ps" in payload and payload["ps"] in self.presets:
            return await self.apply_json(self.presets[payload["ps"]])

        seg = payload.get("seg")
        segments = [seg] if isinstance(seg, Mapping) else seg if isinstance(seg, list) else []
        for entry in segments:
            if isinstance(entry, Mapping):
                self._apply_segment(entry)
        return True

    def _apply_segment(self, entry: Mapping):
        seg_id = entry.get("id")
        name = entry.get("n")
        if isinstance(seg_id, int) and isinstance(name, str) and 0 <= seg_id < len(self.segment_names):
            self.segment_names[seg_id] = name

        sx = entry.get("sx")
        if isinstance(sx, int) and not isinstance(sx, bool):
            self.speed = clamp_byte(sx)

        col = entry.get("col")
        if isinstance(col, list) and col and isinstance(col[0], (list, tuple)):
            first = col[0]
            if len(first) >= 3:
                self.color = [clamp_byte(int(c)) for c in first[:3]]
            if len(first) >= 4:
                self.white = clamp_byte(int(first[3]))

    async def apply_config(self, cfg: Mapping) -> bool:
        logger.debug(f"Simulated applyConfig: {', '.join(cfg.keys())}")
        self.config.update(cfg)
        return True

    async def supports_rgbw(self) -> bool:
        return True

    async def get_total_led_count(self) -> Optional[int]:
        return self.led_count

    async def fetch_segments(self) -> List[Segment]:
        return [Segment(id=i, name=name) for i, name in enumerate(self.segment_names)]

    async def rename_segment(self, segment_id: int, name: str) -> bool:
        if not 0 <= segment_id < len(self.segment_names):
            return False
        self.segment_names[segment_id] = name
        return True

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
        return 0 <= segment_id < len(self.segment_names)

    async def save_preset(self, preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        self.presets[preset_id] = normalize_payload(state)
        return True

    async def load_preset(self, preset_id: int) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self.apply_json({"ps": preset_id})

    async def upload_led_map(self, json_content: str) -> bool:
        self.last_led_map = json_content
        return True

    async def configure_sync_receiver(self) -> bool:
        return True

    async def configure_sync_sender(self, targets: Sequence[str] = (), ddp_port: Optional[int] = None) -> bool:
        return True
