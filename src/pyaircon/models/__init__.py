"""Data models for appliance state, the protocol catalog and broker messages."""

from pyaircon.models._base import AirconBaseModel, UtcDatetime, parse_timestamp
from pyaircon.models.command import ControlCommand, PowerCommandRequest, ProtocolRef, PublishAck
from pyaircon.models.protocol import SignalProtocol
from pyaircon.models.report import DeviceReport
from pyaircon.models.state import ApplianceState
from pyaircon.models.temperature import TemperatureReading, TemperatureUnit

__all__ = [
    "AirconBaseModel",
    "ApplianceState",
    "ControlCommand",
    "DeviceReport",
    "PowerCommandRequest",
    "ProtocolRef",
    "PublishAck",
    "SignalProtocol",
    "TemperatureReading",
    "TemperatureUnit",
    "UtcDatetime",
    "parse_timestamp",
]
