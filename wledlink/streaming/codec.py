"""
Frame codec for the UDP pixel stream.

Header layout (12 bytes):
    0..3   magic 'A', 'L', 'V', 0x01 (protocol id + version)
    4      flags (bit 0 data present, bit 4 RGBW pixel packing)
    5      sequence number (0..255, wraps)
    6..7   payload length, big-endian
    8..11  channel offset, big-endian

The payload follows directly: tightly packed RGB (3 bytes/pixel) or RGBW
(4 bytes/pixel). One datagram per frame, no acknowledgment.
"""

import struct
from typing import Iterable, Sequence

MAGIC = b"ALV\x01"
HEADER_SIZE = 12

FLAG_DATA = 0x01
FLAG_RGBW = 0x10

MAX_PAYLOAD = 0xFFFF

_HEADER = struct.Struct(">4sBBHI")


def build_header(length: int, offset: int = 0, rgbw: bool = False, sequence: int = 0) -> bytes:
    """Build the 12-byte frame header."""
    if not 0 <= length <= MAX_PAYLOAD:
        raise ValueError(f"Payload length out of range: {length}")
    flags = FLAG_DATA
    if rgbw:
        flags |= FLAG_RGBW
    return _HEADER.pack(MAGIC, flags, sequence & 0xFF, length, offset & 0xFFFFFFFF)


def parse_header(packet: bytes) -> dict:
    """Decode a frame header (used for diagnostics and tests)."""
    if len(packet) < HEADER_SIZE:
        raise ValueError(f"Packet too short: {len(packet)} bytes")
    magic, flags, sequence, length, offset = _HEADER.unpack_from(packet)
    if magic != MAGIC:
        raise ValueError(f"Bad magic: {magic!r}")
    return {
        "flags": flags,
        "rgbw": bool(flags & FLAG_RGBW),
        "sequence": sequence,
        "length": length,
        "offset": offset,
    }


def encode_frame(data: bytes, sequence: int, offset: int = 0, rgbw: bool = False) -> bytes:
    """Header + payload as a single datagram."""
    return build_header(len(data), offset=offset, rgbw=rgbw, sequence=sequence) + bytes(data)


def pack_pixels(pixels: Iterable[Sequence[int]], rgbw: bool = False) -> bytes:
    """
    Pack pixels into the wire payload.

    Each pixel is (r, g, b) or (r, g, b, w); a missing white channel packs
    as 0 when rgbw is set, and an extra one is dropped when it is not.
    """
    bytes_per_pixel = 4 if rgbw else 3
    out = bytearray()
    for pixel in pixels:
        channels = [max(0, min(int(c), 255)) for c in pixel[:bytes_per_pixel]]
        channels.extend([0] * (bytes_per_pixel - len(channels)))
        out.extend(channels)
    return bytes(out)
