"""Broker connection management (REST and MQTT variants)."""

from __future__ import annotations

import aiohttp

from pyaircon.broker.base import Broker, ConnectionState, StateListener
from pyaircon.broker.mqtt import ClientFactory, MqttBroker
from pyaircon.broker.rest import RestBroker
from pyaircon.config import AirconConfig, BrokerMode
from pyaircon.exceptions import ConfigurationError


def create_broker(
    config: AirconConfig,
    *,
    http_session: aiohttp.ClientSession | None = None,
    mqtt_client_factory: ClientFactory | None = None,
    on_state_change: StateListener | None = None,
) -> Broker:
    """Build the broker variant selected by ``config.broker_mode``.

    Credentials are validated here, before any network activity.
    """
    if config.broker_mode == BrokerMode.REST:
        return RestBroker(config.rest, session=http_session, on_state_change=on_state_change)
    if config.broker_mode == BrokerMode.MQTT:
        return MqttBroker(
            config.mqtt,
            client_factory=mqtt_client_factory,
            on_state_change=on_state_change,
        )
    raise ConfigurationError(f"Unsupported broker mode: {config.broker_mode!r}")


__all__ = [
    "Broker",
    "ConnectionState",
    "MqttBroker",
    "RestBroker",
    "create_broker",
]
