"""
Device control contract shared by every JSON transport.

Each transport is an independent implementation of DeviceTransport; the
base class carries no instance state, so one transport's cache can never
leak into another's behavior.

Expected failures (device offline, malformed response, unsupported
capability) never raise across this interface: mutating calls return
False and reads return None.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import Segment, parse_segments


class DeviceTransport(ABC):
    """Capability interface for controlling one device"""

    # Short name used in logs and by the selector
    kind = "base"

    @abstractmethod
    async def get_state(self) -> Optional[Dict[str, Any]]:
        """Best available /json/state snapshot, or None when unknown/unreachable."""

    @abstractmethod
    async def set_state(
        self,
        on: Optional[bool] = None,
        brightness: Optional[int] = None,
        speed: Optional[int] = None,
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        force_zero_white: bool = False,
    ) -> bool:
        """Apply all provided fields in a single network operation."""

    @abstractmethod
    async def apply_json(self, payload: Mapping) -> bool:
        """Send a caller-built state payload (normalized before sending)."""

    @abstractmethod
    async def apply_config(self, cfg: Mapping) -> bool:
        """Write persistent device configuration (/json/cfg)."""

    # Optional capabilities. Defaults degrade gracefully.

    async def supports_rgbw(self) -> bool:
        return False

    async def get_total_led_count(self) -> Optional[int]:
        return None

    async def fetch_segments(self) -> List[Segment]:
        return parse_segments(await self.get_state())

    async def rename_segment(self, segment_id: int, name: str) -> bool:
        return False

    async def apply_to_segments(
        self,
        ids: Sequence[int],
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        fx: Optional[int] = None,
        speed: Optional[int] = None,
        intensity: Optional[int] = None,
    ) -> bool:
        return False

    async def update_segment_config(
        self,
        segment_id: int,
        start: Optional[int] = None,
        stop: Optional[int] = None,
    ) -> bool:
        return False

    async def save_preset(self, preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> bool:
        return False

    async def load_preset(self, preset_id: int) -> bool:
        return False

    async def upload_led_map(self, json_content: str) -> bool:
        return False

    async def configure_sync_receiver(self) -> bool:
        return False

    async def configure_sync_sender(self, targets: Sequence[str] = (), ddp_port: Optional[int] = None) -> bool:
        return False

    async def close(self):
        """Release network resources held by this transport."""
