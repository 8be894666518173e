"""Device state snapshot models"""

from dataclasses import dataclass, field, asdict
from typing import Any, List, Mapping, Optional

# Upper bound for a single segment's LED range
MAX_SEGMENT_LEDS = 10000


def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    # bool is an int subclass but never a valid index or level here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


@dataclass
class Color:
    """RGB color with optional white channel"""
    r: int
    g: int
    b: int
    w: Optional[int] = None

    @classmethod
    def from_list(cls, values) -> Optional["Color"]:
        """Parse a wire color [r, g, b] or [r, g, b, w]."""
        if not isinstance(values, (list, tuple)) or len(values) < 3:
            return None
        channels = [_as_int(v, None) for v in values[:4]]
        if any(c is None for c in channels[:3]):
            return None
        w = channels[3] if len(channels) > 3 else None
        return cls(channels[0], channels[1], channels[2], w)

    def to_list(self) -> List[int]:
        if self.w is None:
            return [self.r, self.g, self.b]
        return [self.r, self.g, self.b, self.w]


@dataclass
class Segment:
    """A segment of the strip, presented to users as a channel"""
    id: int
    name: str
    start: int = 0
    stop: int = 0  # exclusive
    speed: Optional[int] = None
    intensity: Optional[int] = None
    effect: Optional[int] = None
    colors: List[Color] = field(default_factory=list)

    @property
    def led_count(self) -> int:
        """Number of LEDs in this segment, never negative"""
        return max(0, min(self.stop - self.start, MAX_SEGMENT_LEDS))

    @classmethod
    def from_dict(cls, data: Mapping, fallback_index: int) -> "Segment":
        """Parse a segment object; malformed fields fall back to defaults."""
        if not isinstance(data, Mapping):
            return cls(id=fallback_index, name=f"Channel {fallback_index + 1}")

        seg_id = _as_int(data.get("id"), fallback_index)
        name = f"Channel {seg_id + 1}"  # 1-indexed for display
        n = data.get("n")
        if isinstance(n, str) and n.strip():
            name = n.strip()

        colors = []
        col = data.get("col")
        if isinstance(col, list):
            for raw in col[:3]:
                color = Color.from_list(raw)
                if color is not None:
                    colors.append(color)

        return cls(
            id=seg_id,
            name=name,
            start=_as_int(data.get("start"), 0),
            stop=_as_int(data.get("stop"), 0),
            speed=_as_int(data.get("sx"), None),
            intensity=_as_int(data.get("ix"), None),
            effect=_as_int(data.get("fx"), None),
            colors=colors,
        )

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)


def parse_segments(state: Optional[Mapping]) -> List[Segment]:
    """
    Extract segments from a /json/state object.

    Firmware builds emit 'seg' either as a list of segment objects or as a
    single object; both become a uniform list.
    """
    if not isinstance(state, Mapping):
        return []
    seg = state.get("seg")
    if isinstance(seg, list):
        return [Segment.from_dict(m, i) for i, m in enumerate(seg) if isinstance(m, Mapping)]
    if isinstance(seg, Mapping):
        return [Segment.from_dict(seg, 0)]
    return []


@dataclass
class DeviceStateSnapshot:
    """Last known device state as seen by one transport"""
    on: bool = False
    brightness: int = 0
    segments: List[Segment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping) -> "DeviceStateSnapshot":
        bri = _as_int(data.get("bri"), 0)
        on = data.get("on")
        if not isinstance(on, bool):
            on = bri > 0
        return cls(
            on=on,
            brightness=max(0, min(bri, 255)),
            segments=parse_segments(data),
        )

    @property
    def primary_segment(self) -> Optional[Segment]:
        return self.segments[0] if self.segments else None

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)
