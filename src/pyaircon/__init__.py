"""pyaircon - Async air-conditioner command dispatch over the NETPIE IoT broker."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyaircon")
except PackageNotFoundError:
    __version__ = "0+local"
from pyaircon.broker import ConnectionState, MqttBroker, RestBroker, create_broker
from pyaircon.client import AirconClient
from pyaircon.config import AirconConfig, BrokerMode, MqttBrokerConfig, RestBrokerConfig
from pyaircon.coordinator import CommandCoordinator, CommandPhase
from pyaircon.exceptions import (
    AirconError,
    BrokerConnectionError,
    BrokerError,
    CommandOutcome,
    ConfigurationError,
    DeviceCommunicationError,
    InvalidInputError,
    NotSelectedError,
    PublishError,
    StateNotFoundError,
    StorageError,
)
from pyaircon.models import (
    ApplianceState,
    ControlCommand,
    DeviceReport,
    PowerCommandRequest,
    ProtocolRef,
    PublishAck,
    SignalProtocol,
    TemperatureReading,
    TemperatureUnit,
)
from pyaircon.publisher import BrokerPublisher
from pyaircon.resolver import ProtocolResolver
from pyaircon.store import ApplianceStore, InMemoryStore

__all__ = [
    "__version__",
    "AirconClient",
    "AirconConfig",
    "AirconError",
    "ApplianceState",
    "ApplianceStore",
    "BrokerConnectionError",
    "BrokerError",
    "BrokerMode",
    "BrokerPublisher",
    "CommandCoordinator",
    "CommandOutcome",
    "CommandPhase",
    "ConfigurationError",
    "ConnectionState",
    "ControlCommand",
    "DeviceCommunicationError",
    "DeviceReport",
    "InMemoryStore",
    "InvalidInputError",
    "MqttBroker",
    "MqttBrokerConfig",
    "NotSelectedError",
    "PowerCommandRequest",
    "ProtocolRef",
    "ProtocolResolver",
    "PublishAck",
    "PublishError",
    "RestBroker",
    "RestBrokerConfig",
    "SignalProtocol",
    "StateNotFoundError",
    "StorageError",
    "TemperatureReading",
    "TemperatureUnit",
    "create_broker",
]
