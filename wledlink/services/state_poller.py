"""
State poller - keeps a local view of the device state up to date.

Reads the selected transport every POLL_INTERVAL_S. Writes made through
post_update() pause polling until POST_SETTLE_S after the write, so a read
never reports the state from before the device applied it. When the device
stops answering, a slower reconnect loop pings it until it is back.
"""

import asyncio
import logging
from typing import Optional

from .. import config
from ..models import Color, DeviceStateSnapshot

logger = logging.getLogger(__name__)


class StatePoller:
    """Periodic state reader for the device behind a TransportSelector"""

    def __init__(
        self,
        selector,
        interval: Optional[float] = None,
        settle_delay: Optional[float] = None,
        reconnect_interval: Optional[float] = None,
    ):
        self.selector = selector
        self.interval = interval or config.POLL_INTERVAL_S
        self.settle_delay = settle_delay if settle_delay is not None else config.POST_SETTLE_S
        self.reconnect_interval = reconnect_interval or config.RECONNECT_INTERVAL_S

        self.snapshot = DeviceStateSnapshot()
        self.connected = False
        self.supports_rgbw = False

        self._running = False
        self._posting = 0  # writes outstanding or settling
        self._info_queried = False
        self._poll_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def is_posting(self) -> bool:
        return self._posting > 0

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def start(self):
        if self._running:
            return
        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"State poller started (every {self.interval}s)")

    async def stop(self):
        self._running = False
        for task in (self._poll_task, self._reconnect_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None
        self._reconnect_task = None
        logger.info("State poller stopped")

    async def _poll_loop(self):
        while self._running:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Error in state poll: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    async def poll_once(self, force: bool = False) -> bool:
        """One poll cycle. Returns True when fresh state was read."""
        if self._posting and not force:
            return False

        transport = await self.selector.select()
        if transport is None:
            return False

        data = await transport.get_state()
        if data is None:
            if self.connected:
                logger.warning("Device stopped answering state reads")
            self.connected = False
            self._ensure_reconnect()
            return False

        self._cancel_reconnect()
        self.snapshot = DeviceStateSnapshot.from_dict(data)
        self.connected = True

        if not self._info_queried:
            self._info_queried = True
            self.supports_rgbw = await transport.supports_rgbw()
            logger.info(f"Device RGBW support: {self.supports_rgbw}")
        return True

    def _ensure_reconnect(self):
        if self.reconnecting:
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    def _cancel_reconnect(self):
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect_loop(self):
        while True:
            await asyncio.sleep(self.reconnect_interval)
            try:
                transport = await self.selector.select()
                if transport is None:
                    continue
                data = await transport.get_state()
            except Exception as e:
                logger.warning(f"Reconnect ping failed: {e}")
                continue
            if data is not None:
                # Next poll refreshes the values
                self.connected = True
                logger.info("Device reconnected")
                self._reconnect_task = None
                return

    async def refresh_connection(self) -> bool:
        """Force an immediate read, e.g. after the app resumes."""
        ok = await self.poll_once(force=True)
        if not ok:
            logger.info("Connection refresh failed, reconnect loop running")
        return ok

    async def post_update(self, **fields) -> bool:
        """
        Write state fields through the selector in one set_state call.

        Polling is suspended while the write is outstanding and for the
        settle delay after it.
        """
        if self.selector.stream_active:
            logger.info("Skipping state update because a pixel stream is active")
            return False

        transport = await self.selector.select()
        if transport is None:
            return False

        self._posting += 1
        try:
            ok = await transport.set_state(**fields)
            if not ok and self.connected:
                self.connected = False
                self._ensure_reconnect()
            await asyncio.sleep(self.settle_delay)
            return ok
        finally:
            self._posting -= 1

    # Convenience setters mirroring the controls a UI exposes

    async def toggle_power(self, on: bool) -> bool:
        self.snapshot.on = on
        return await self.post_update(on=on)

    async def set_brightness(self, brightness: int) -> bool:
        self.snapshot.brightness = brightness
        # Power goes along so the device does not read brightness alone as "off"
        return await self.post_update(on=self.snapshot.on, brightness=brightness)

    async def set_speed(self, speed: int) -> bool:
        return await self.post_update(speed=speed)

    async def set_color(self, color: Color) -> bool:
        # Pure colors on RGBW strips keep the white LED off
        return await self.post_update(color=color, force_zero_white=self.supports_rgbw)

    async def set_warm_white(self, white: int, color: Optional[Color] = None) -> bool:
        if color is None:
            segment = self.snapshot.primary_segment
            color = segment.colors[0] if segment and segment.colors else Color(0, 0, 0)
        return await self.post_update(color=color, white=white if self.supports_rgbw else None)
