"""Services package"""

from .backend_bridge import BackendBridgeClient, CommandResult
from .mqtt_bridge import MqttBridge
from .firebase_service import FirebaseService
from .selector import TransportSelector, ConnectivityStatus, RemoteAccessSettings
from .state_poller import StatePoller

__all__ = [
    'BackendBridgeClient', 'CommandResult', 'MqttBridge', 'FirebaseService',
    'TransportSelector', 'ConnectivityStatus', 'RemoteAccessSettings', 'StatePoller',
]
