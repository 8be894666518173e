"""
wledlink - WLED controller link

Selects a transport for the configured device (local HTTP, cloud relay or
broker relay), keeps its state polled and logs what it sees. Settings come
from the environment / .env (see wledlink/config.py).
"""

import asyncio
import logging
import signal
import sys

from wledlink import config
from wledlink.services import (
    BackendBridgeClient,
    ConnectivityStatus,
    FirebaseService,
    RemoteAccessSettings,
    StatePoller,
    TransportSelector,
)
from wledlink.utils import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


class LinkServer:
    """Keeps one device's state in view through whichever path reaches it"""

    def __init__(self):
        logger.info("Initializing wledlink...")

        remote = RemoteAccessSettings(
            enabled=config.REMOTE_ACCESS_ENABLED,
            prefer_broker_relay=config.PREFER_BROKER_RELAY,
            user_id=config.FIREBASE_USER_ID,
            controller_id=config.CONTROLLER_ID,
            controller_ip=config.CONTROLLER_IP,
            webhook_url=config.WEBHOOK_URL,
        )
        self.bridge = BackendBridgeClient() if config.PREFER_BROKER_RELAY else None
        self.firebase = FirebaseService() if config.REMOTE_ACCESS_ENABLED else None

        self.selector = TransportSelector(
            host=config.WLED_HOST,
            connectivity=ConnectivityStatus(config.CONNECTIVITY),
            remote=remote,
            bridge=self.bridge,
            firebase=self.firebase,
        )
        self.poller = StatePoller(self.selector)
        self.running = False

    async def start(self):
        logger.info(f"Starting wledlink (host: {config.WLED_HOST}, connectivity: {config.CONNECTIVITY})")
        transport = await self.selector.select()
        if transport is None:
            logger.warning("No transport available for the current settings")
        else:
            logger.info(f"Using {transport.kind} transport")

        await self.poller.start()
        self.running = True

        was_connected = None
        while self.running:
            if self.poller.connected != was_connected:
                was_connected = self.poller.connected
                state = self.poller.snapshot
                logger.info(f"Device connected: {was_connected} (on: {state.on}, bri: {state.brightness})")
            await asyncio.sleep(1)

    async def stop(self):
        logger.info("Stopping wledlink...")
        self.running = False
        await self.poller.stop()
        await self.selector.close()
        if self.bridge is not None:
            self.bridge.close()
        logger.info("wledlink stopped")


async def main():
    server = LinkServer()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        server.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await server.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
    finally:
        await server.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"wledlink crashed: {e}", exc_info=True)
        sys.exit(1)
