"""
Stream transport - continuous pixel frames over UDP.

Frames go straight to the device as single datagrams (see
streaming.codec for the wire format). While a stream is active it owns the
device's pixels; JSON colour/effect writes through the selector are skipped
until stop() is called.
"""

import asyncio
import logging
import socket
import time
from typing import Optional

import requests

from .. import config
from ..streaming.codec import encode_frame

logger = logging.getLogger(__name__)

# Reported LED count when running without hardware
SIMULATED_LED_COUNT = 150


class StreamTransport:
    """UDP frame sender with a fixed-rate asyncio loop"""

    kind = "stream"

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        fps: Optional[int] = None,
        simulate: Optional[bool] = None,
        info_timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = port or config.DDP_PORT
        self.fps = fps or config.STREAM_FPS
        self.simulate = config.SIMULATE_DEVICES if simulate is None else simulate
        self.info_timeout = info_timeout or config.WLED_INFO_TIMEOUT_S

        self.sequence = 0
        self.frames_sent = 0
        self._socket: Optional[socket.socket] = None
        self._task: Optional[asyncio.Task] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def start(self, generator=None, rgbw: bool = False):
        """
        Open a stream session.

        With a generator (anything with next_frame(dt) -> bytes) a loop task
        sends frames at the configured rate. Without one, the caller pushes
        frames with send_frame().
        """
        if self._active:
            await self.stop()

        if not self.simulate and not self.host:
            logger.warning("Stream not started: no device host set")
            return

        if not self.simulate:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.bind(("0.0.0.0", 0))
                sock.setblocking(False)
            except OSError as e:
                sock.close()
                logger.error(f"Stream socket bind failed: {e}")
                raise
            self._socket = sock

        self._active = True
        mode = "simulated" if self.simulate else f"{self.host}:{self.port}"
        logger.info(f"Stream started ({mode}, {self.fps} fps, rgbw: {rgbw})")

        if generator is not None:
            self._task = asyncio.create_task(self._run(generator, rgbw))

    async def _run(self, generator, rgbw: bool):
        interval = 1.0 / self.fps
        last = time.monotonic()
        try:
            while self._active:
                now = time.monotonic()
                dt = now - last
                last = now
                self.send_frame(generator.next_frame(dt), rgbw=rgbw)
                elapsed = time.monotonic() - now
                await asyncio.sleep(max(0.0, interval - elapsed))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Stream loop stopped on error: {e}", exc_info=True)
        finally:
            self._active = False
            self._close_socket()

    def send_frame(self, data: bytes, channel_offset: int = 0, rgbw: bool = False) -> bool:
        """
        Send one frame. Returns True when a datagram went out.

        The sequence number advances on every call, including frames
        dropped because there is no session or the sink is simulated.
        """
        sequence = self.sequence
        self.sequence = (self.sequence + 1) & 0xFF

        if not self._active:
            return False
        if self.simulate or self._socket is None:
            if sequence % 30 == 0:
                logger.debug(f"Stream(sim): frame seq={sequence} bytes={len(data)} rgbw={rgbw}")
            return False

        try:
            packet = encode_frame(data, sequence, offset=channel_offset, rgbw=rgbw)
        except ValueError as e:
            logger.error(f"Frame dropped: {e}")
            return False

        try:
            self._socket.sendto(packet, (self.host, self.port))
        except OSError as e:
            logger.warning(f"Stream send to {self.host} failed: {e}")
            return False

        self.frames_sent += 1
        return True

    async def stop(self):
        self._active = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._close_socket()
        logger.info(f"Stream stopped ({self.frames_sent} frames sent)")

    def _close_socket(self):
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Error closing stream socket: {e}")
            self._socket = None

    def _fetch_led_count(self) -> Optional[int]:
        try:
            response = requests.get(
                f"http://{self.host}/json/info",
                headers={"Accept": "application/json"},
                timeout=self.info_timeout,
            )
            if not response.ok:
                return None
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"LED count query to {self.host} failed: {e}")
            return None

        leds = data.get("leds") if isinstance(data, dict) else None
        if isinstance(leds, dict):
            count = leds.get("count")
            if isinstance(count, (int, float)) and not isinstance(count, bool):
                return int(count)
        return None

    async def get_led_count(self, default: Optional[int] = None) -> Optional[int]:
        """LED count from /json/info, or default when the device does not answer."""
        if self.simulate:
            return SIMULATED_LED_COUNT
        count = await asyncio.to_thread(self._fetch_led_count)
        return count if count is not None else default

    async def close(self):
        await self.stop()
