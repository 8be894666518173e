#!/usr/bin/env python3
"""
Palette Stream Test
Streams a flowing palette to a WLED device over UDP, then hands control
back to the JSON API.

Usage:
    python scripts/stream_palette.py 192.168.1.50 [seconds]
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from wledlink.services import TransportSelector
from wledlink.streaming import PaletteFlowGenerator
from wledlink.transports import StreamTransport

PALETTE = [
    [255, 40, 0],
    [255, 160, 0],
    [120, 0, 255],
]
DEFAULT_LED_COUNT = 150


async def run(host, seconds):
    selector = TransportSelector(host=host, demo=False)

    print("\n" + "=" * 50)
    print(f"🌈 PALETTE STREAM TEST ({host})")
    print("=" * 50 + "\n")

    device = await selector.select()
    rgbw = await device.supports_rgbw() if device else False
    led_count = await StreamTransport(host).get_led_count(default=DEFAULT_LED_COUNT)
    print(f"  LEDs: {led_count}, RGBW: {rgbw}")

    generator = PaletteFlowGenerator(PALETTE, led_count, rgbw=rgbw, speed=0.3)
    try:
        await selector.start_stream(generator, rgbw=rgbw)
        print(f"  Streaming for {seconds}s... ", end="", flush=True)
        await asyncio.sleep(seconds)
        print("✅")

        # JSON writes are refused while the stream owns the device
        skipped = not await selector.set_state(brightness=10)
        print(f"  JSON write skipped during stream: {'✅' if skipped else '❌'}")
    finally:
        await selector.stop_stream()

    ok = await selector.set_state(on=True, brightness=128)
    print(f"  JSON control restored: {'✅' if ok else '❌'}")
    await selector.close()
    return ok


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    duration = float(sys.argv[2]) if len(sys.argv) > 2 else 5.0
    try:
        sys.exit(0 if asyncio.run(run(sys.argv[1], duration)) else 1)
    except KeyboardInterrupt:
        print("\n⚠️  Test interrupted")
