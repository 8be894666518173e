"""Transports package"""

from .base import DeviceTransport
from .local import LocalTransport
from .relay_queue import RelayQueueTransport
from .broker_relay import BrokerRelayTransport
from .stream import StreamTransport
from .simulated import SimulatedTransport

__all__ = [
    'DeviceTransport', 'LocalTransport', 'RelayQueueTransport',
    'BrokerRelayTransport', 'StreamTransport', 'SimulatedTransport',
]
