"""
State payload helpers shared by every JSON transport.

WLED only updates the fields explicitly present in a POST /json/state body.
When switching patterns, omitting grp/spc/of makes the previous pattern's
grouping, spacing and offset persist, which shows up as visual glitches.
normalize_payload() fills those in for full pattern applications while
leaving slider-style partial updates alone.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .. import config

# Legacy key -> canonical key
_LEGACY_SEGMENT_KEYS = (("gp", "grp"), ("sp", "spc"))

# Defaults injected into segments that carry an effect id
_PATTERN_DEFAULTS = (("grp", 1), ("spc", 0), ("of", 0))


def _normalize_segment(raw: Any) -> Any:
    if not isinstance(raw, Mapping):
        return raw

    s = dict(raw)

    # Legacy renames apply whether or not fx is present
    for legacy, canonical in _LEGACY_SEGMENT_KEYS:
        if legacy in s and canonical not in s:
            s[canonical] = s.pop(legacy)

    if "fx" in s:
        for key, default in _PATTERN_DEFAULTS:
            s.setdefault(key, default)

    return s


def normalize_payload(payload: Mapping) -> Dict[str, Any]:
    """
    Return a normalized copy of a WLED state payload.

    For each segment object in 'seg':
    - gp -> grp and sp -> spc when the canonical key is absent
    - if fx is present (full pattern application), missing grp/spc/of
      default to 1/0/0
    - segments without fx are otherwise left untouched

    The input may be read-only and is never mutated. Applying this twice
    gives the same result as applying it once.
    """
    result = dict(payload)
    seg = result.get("seg")
    if isinstance(seg, Mapping):
        result["seg"] = _normalize_segment(seg)
    elif isinstance(seg, (list, tuple)) and seg:
        result["seg"] = [_normalize_segment(s) for s in seg]
    return result


def clamp_byte(value: int) -> int:
    return max(0, min(int(value), 255))


def rgb_to_rgbw(
    r: int,
    g: int,
    b: int,
    explicit_white: Optional[int] = None,
    force_zero_white: bool = False,
) -> List[int]:
    """
    Convert RGB to [R, G, B, W].

    - explicit_white: used as the white channel as-is (clamped to 0-255)
    - force_zero_white: W=0 and RGB unchanged, for pure saturated colors
    - otherwise W = min(R, G, B), subtracted from each channel so the
      white portion is rendered by the dedicated white LED
    """
    if explicit_white is not None:
        return [r, g, b, clamp_byte(explicit_white)]
    if force_zero_white:
        return [r, g, b, 0]
    w = min(r, g, b)
    return [r - w, g - w, b - w, w]


def _rgb(color: Optional[Sequence[int]]) -> List[int]:
    """Accept a Color model or any (r, g, b[, w]) sequence."""
    if color is None:
        return [0, 0, 0]
    if hasattr(color, "to_list"):
        color = color.to_list()
    return [clamp_byte(c) for c in list(color)[:3]]


def build_state_payload(
    on: Optional[bool] = None,
    brightness: Optional[int] = None,
    speed: Optional[int] = None,
    color: Optional[Sequence[int]] = None,
    white: Optional[int] = None,
    force_zero_white: bool = False,
) -> Dict[str, Any]:
    """
    Build one payload covering every provided field.

    Speed and color/white go into a single update for segment 0. When no
    segment field is given, 'seg' is left out entirely: an empty segment
    list would reset unrelated parameters on the device.
    """
    payload: Dict[str, Any] = {}
    if on is not None:
        payload["on"] = on
    if brightness is not None:
        payload["bri"] = clamp_byte(brightness)

    seg_update: Dict[str, Any] = {"id": 0}
    if speed is not None:
        seg_update["sx"] = clamp_byte(speed)
    if color is not None or white is not None:
        r, g, b = _rgb(color)
        seg_update["col"] = [rgb_to_rgbw(r, g, b, explicit_white=white, force_zero_white=force_zero_white)]
    if len(seg_update) > 1:
        payload["seg"] = [seg_update]

    return payload


def build_segments_payload(
    ids: Iterable[int],
    color: Optional[Sequence[int]] = None,
    white: Optional[int] = None,
    fx: Optional[int] = None,
    speed: Optional[int] = None,
    intensity: Optional[int] = None,
) -> Dict[str, Any]:
    """Apply the same color/effect/speed to several segments in one write."""
    segs = []
    for seg_id in ids:
        m: Dict[str, Any] = {"id": seg_id}
        if fx is not None:
            m["fx"] = fx
        if speed is not None:
            m["sx"] = clamp_byte(speed)
        if intensity is not None:
            m["ix"] = clamp_byte(intensity)
        if color is not None:
            r, g, b = _rgb(color)
            m["col"] = [rgb_to_rgbw(r, g, b, explicit_white=white)]
        segs.append(m)
    return normalize_payload({"seg": segs})


def build_segment_config_payload(
    segment_id: int,
    start: Optional[int] = None,
    stop: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """Returns None when there is nothing to change."""
    seg_update: Dict[str, Any] = {"id": segment_id}
    if start is not None:
        seg_update["start"] = start
    if stop is not None:
        seg_update["stop"] = stop
    if len(seg_update) <= 1:
        return None
    return {"seg": [seg_update]}


def build_rename_payload(segment_id: int, name: str) -> Dict[str, Any]:
    return {"seg": [{"id": segment_id, "n": name}]}


def is_valid_preset_id(preset_id: int) -> bool:
    return (
        isinstance(preset_id, int)
        and not isinstance(preset_id, bool)
        and config.PRESET_ID_MIN <= preset_id <= config.PRESET_ID_MAX
    )


def build_preset_payload(preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> Dict[str, Any]:
    """The given state plus psave (and the preset name, if any)."""
    payload = normalize_payload(state)
    payload["psave"] = preset_id
    if preset_name:
        payload["n"] = preset_name
    return payload


def build_sync_sender_payloads(targets: Sequence[str] = (), ddp_port: int = None) -> List[Dict[str, Any]]:
    """UDP sync sending, then the DDP hint some firmware builds honor."""
    ddp: Dict[str, Any] = {"en": True, "port": ddp_port or config.DDP_PORT}
    if targets:
        ddp["targets"] = list(targets)
    return [{"udpn": {"send": True}}, {"ddp": ddp}]


def build_sync_receiver_payload() -> Dict[str, Any]:
    return {"udpn": {"recv": True}}
