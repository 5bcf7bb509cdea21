"""Client configuration for pyaircon."""

from __future__ import annotations

import dataclasses
import enum
import os
from typing import Any

from pyaircon._constants import (
    API_BASE_URL,
    MQTT_CONNECT_TIMEOUT_S,
    MQTT_HOST,
    MQTT_KEEPALIVE_S,
    MQTT_PORT,
    MQTT_PUBLISH_TIMEOUT_S,
    MQTT_RECONNECT_INTERVAL_S,
)
from pyaircon.exceptions import ConfigurationError


class BrokerMode(enum.StrEnum):
    """Which broker transport is used to deliver commands."""

    REST = "rest"
    MQTT = "mqtt"


@dataclasses.dataclass(frozen=True)
class RestBrokerConfig:
    """Credentials for the stateless NETPIE REST API.

    Parameters
    ----------
    client_id : str
        Device client ID issued by NETPIE.
    token : str
        Device token paired with ``client_id``.
    base_url : str
        REST API base URL.
    request_timeout : float
        Total timeout in seconds for a single publish request.
    """

    client_id: str = ""
    token: str = ""
    base_url: str = API_BASE_URL
    request_timeout: float = 15.0


@dataclasses.dataclass(frozen=True)
class MqttBrokerConfig:
    """Credentials and timings for the persistent NETPIE MQTT session.

    Parameters
    ----------
    app_id : str
        NETPIE application ID the device belongs to.
    key : str
        Device key; also the MQTT username.
    secret : str
        Device secret; the MQTT password.
    alias : str
        Device alias; the client identity is ``<key>:<alias>``.
    host, port : str, int
        Broker address.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_interval : int
        Fixed delay in seconds between background reconnect attempts.
    connect_timeout : float
        Upper bound in seconds for a handshake awaited by ``ensure_ready``.
    publish_timeout : float
        Seconds to wait for the broker's QoS 1 acknowledgement.
    """

    app_id: str = ""
    key: str = ""
    secret: str = ""
    alias: str = ""
    host: str = MQTT_HOST
    port: int = MQTT_PORT
    keepalive: int = MQTT_KEEPALIVE_S
    reconnect_interval: int = MQTT_RECONNECT_INTERVAL_S
    connect_timeout: float = MQTT_CONNECT_TIMEOUT_S
    publish_timeout: float = MQTT_PUBLISH_TIMEOUT_S

    @property
    def client_id(self) -> str:
        return f"{self.key}:{self.alias}"


@dataclasses.dataclass(frozen=True)
class AirconConfig:
    """Top-level configuration.

    Parameters
    ----------
    broker_mode : BrokerMode
        Transport chosen once at startup.
    rest : RestBrokerConfig
        Used when ``broker_mode`` is ``rest``.
    mqtt : MqttBrokerConfig
        Used when ``broker_mode`` is ``mqtt``.
    serialize_commands : bool
        Run power commands one at a time inside this process. Only needed
        when the backing store has no conditional updates.
    """

    broker_mode: BrokerMode = BrokerMode.REST
    rest: RestBrokerConfig = dataclasses.field(default_factory=RestBrokerConfig)
    mqtt: MqttBrokerConfig = dataclasses.field(default_factory=MqttBrokerConfig)
    serialize_commands: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> AirconConfig:
        """Create configuration from ``NETPIE_*`` environment variables.

        Explicit keyword arguments override environment values. Missing
        credentials are not an error here; the broker refuses to build
        without them.
        """
        env = os.environ

        rest_kwargs: dict[str, Any] = {}
        _ENV_REST_MAP = {
            "NETPIE_CLIENT_ID": "client_id",
            "NETPIE_TOKEN": "token",
            "NETPIE_API_BASE_URL": "base_url",
        }
        for env_key, field_name in _ENV_REST_MAP.items():
            val = env.get(env_key)
            if val is not None:
                rest_kwargs[field_name] = val

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "NETPIE_APP_ID": "app_id",
            "NETPIE_KEY": "key",
            "NETPIE_SECRET": "secret",
            "NETPIE_ALIAS": "alias",
            "NETPIE_MQTT_HOST": "host",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val

        # numeric fields, handle separately
        try:
            port_env = env.get("NETPIE_MQTT_PORT")
            if port_env is not None:
                mqtt_kwargs["port"] = int(port_env)
            keepalive_env = env.get("NETPIE_MQTT_KEEPALIVE")
            if keepalive_env is not None:
                mqtt_kwargs["keepalive"] = int(keepalive_env)
            timeout_env = env.get("NETPIE_PUBLISH_TIMEOUT")
            if timeout_env is not None:
                mqtt_kwargs["publish_timeout"] = float(timeout_env)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid numeric NETPIE setting: {exc}") from exc

        rest_override = overrides.pop("rest", None)
        if isinstance(rest_override, dict):
            rest_kwargs.update(rest_override)
        elif isinstance(rest_override, RestBrokerConfig):
            rest_kwargs = dataclasses.asdict(rest_override)

        mqtt_override = overrides.pop("mqtt", None)
        if isinstance(mqtt_override, dict):
            mqtt_kwargs.update(mqtt_override)
        elif isinstance(mqtt_override, MqttBrokerConfig):
            mqtt_kwargs = dataclasses.asdict(mqtt_override)

        config_kwargs: dict[str, Any] = {
            "rest": RestBrokerConfig(**rest_kwargs),
            "mqtt": MqttBrokerConfig(**mqtt_kwargs),
        }

        if "broker_mode" not in overrides:
            mode_env = env.get("NETPIE_BROKER_MODE")
            if mode_env is not None:
                try:
                    config_kwargs["broker_mode"] = BrokerMode(mode_env.strip().lower())
                except ValueError as exc:
                    raise ConfigurationError(
                        f"NETPIE_BROKER_MODE must be one of {[m.value for m in BrokerMode]}, got {mode_env!r}"
                    ) from exc

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
