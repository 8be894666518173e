"""Procedural frame generator for the UDP pixel stream"""

import math
from typing import List, Sequence

TWO_PI = 2 * math.pi


class PaletteFlowGenerator:
    """
    Produces smooth frames from a small ordered palette.

    Each pixel blends between two palette entries picked by position, with
    the blend driven by a time phase. Time advances by the wall-clock delta
    passed to next_frame(), so the perceived speed does not depend on the
    frame rate actually achieved.
    """

    def __init__(
        self,
        palette: Sequence[Sequence[int]],
        pixel_count: int,
        rgbw: bool = False,
        speed: float = 0.2,
        spread: float = 0.08,
    ):
        """
        Args:
            palette: list of [r, g, b] or [r, g, b, w] entries
            pixel_count: number of pixels per frame
            rgbw: emit 4 bytes per pixel instead of 3
            speed: cycles per second
            spread: spatial frequency
        """
        self.palette: List[List[int]] = [list(c) for c in palette]
        self.pixel_count = max(0, int(pixel_count))
        self.rgbw = rgbw
        self.speed = speed
        self.spread = spread
        self._t = 0.0

    @property
    def bytes_per_pixel(self) -> int:
        return 4 if self.rgbw else 3

    def next_frame(self, dt: float) -> bytes:
        """Advance time by dt seconds and return the next packed frame."""
        self._t += max(0.0, dt) * self.speed * TWO_PI
        bpp = self.bytes_per_pixel
        out = bytearray(self.pixel_count * bpp)
        if not self.palette:
            return bytes(out)

        n = len(self.palette)
        band = max(1, int(1 / self.spread)) if self.spread > 0 else 1
        for i in range(self.pixel_count):
            phase = (self._t + i * self.spread) % TWO_PI
            mix = math.sin(phase) * 0.5 + 0.5
            a = self.palette[(i // band) % n]
            b = self.palette[(i + 1) % n]
            base = i * bpp
            for ch in range(3):
                out[base + ch] = _blend(a[ch], b[ch], mix)
            if self.rgbw:
                aw = a[3] if len(a) >= 4 else 0
                bw = b[3] if len(b) >= 4 else 0
                out[base + 3] = _blend(aw, bw, mix)
        return bytes(out)


def _blend(a: int, b: int, mix: float) -> int:
    return max(0, min(int(a * (1 - mix) + b * mix), 255))
