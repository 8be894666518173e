"""wledlink - transport core for WLED lighting controllers"""

from .services import TransportSelector, StatePoller, ConnectivityStatus, RemoteAccessSettings
from .transports import DeviceTransport, LocalTransport, RelayQueueTransport, BrokerRelayTransport, StreamTransport

__version__ = "0.1.0"

__all__ = [
    'TransportSelector', 'StatePoller', 'ConnectivityStatus', 'RemoteAccessSettings',
    'DeviceTransport', 'LocalTransport', 'RelayQueueTransport', 'BrokerRelayTransport', 'StreamTransport',
]
