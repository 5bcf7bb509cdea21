"""Persistent NETPIE MQTT session with background reconnect.

A single paho-mqtt client runs its network loop on a background thread.
Callbacks from that thread are marshalled onto the asyncio loop with
``call_soon_threadsafe``; all connection bookkeeping happens on the loop.

``ensure_ready`` hands every concurrent caller the same pending future, so
a burst of commands during a reconnect produces one handshake and many
waiters. After an unexpected disconnect paho retries on its own every
``reconnect_interval`` seconds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyaircon._constants import AIRCON_CONTROL_MQTT_TOPIC
from pyaircon.broker.base import ConnectionState, StateListener, StateTracker
from pyaircon.config import MqttBrokerConfig
from pyaircon.exceptions import BrokerConnectionError, ConfigurationError, PublishError
from pyaircon.models.command import PublishAck

_logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("app_id", "key", "secret", "alias")

ClientFactory = Callable[[MqttBrokerConfig], mqtt.Client]


def build_client(config: MqttBrokerConfig) -> mqtt.Client:
    """Create a clean-session MQTT 3.1.1 client authenticated as the device."""
    client = mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=config.client_id,
        clean_session=True,
        protocol=mqtt.MQTTv311,
    )
    client.username_pw_set(config.key, config.secret)
    client.reconnect_delay_set(min_delay=config.reconnect_interval, max_delay=config.reconnect_interval)
    return client


class MqttBroker:
    """Long-lived broker session delivering commands with QoS 1."""

    control_channel = AIRCON_CONTROL_MQTT_TOPIC

    def __init__(
        self,
        config: MqttBrokerConfig,
        *,
        client_factory: ClientFactory | None = None,
        on_state_change: StateListener | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        missing = [name for name in _REQUIRED_FIELDS if not getattr(config, name)]
        if missing:
            env_names = ", ".join(f"NETPIE_{name.upper()}" for name in missing)
            raise ConfigurationError(f"NETPIE MQTT configuration is incomplete. Missing: {env_names}")
        self._config = config
        self._client_factory = client_factory or build_client
        self._logger = logger or _logger
        self._state = StateTracker("MQTT", on_state_change, self._logger)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._ready: asyncio.Future[None] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state.current

    @property
    def is_connected(self) -> bool:
        return self._state.current == ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.ensure_ready()

    async def ensure_ready(self) -> None:
        """Block until the session is connected.

        Raises :class:`BrokerConnectionError` if the attempt in flight is
        refused, fails, or does not complete within ``connect_timeout``.
        """
        if self.is_connected:
            return

        waiter = self._ready
        if waiter is None or waiter.done():
            waiter = self._begin_attempt()

        try:
            await asyncio.wait_for(asyncio.shield(waiter), self._config.connect_timeout)
        except TimeoutError as exc:
            raise BrokerConnectionError(
                f"MQTT handshake with {self._config.host}:{self._config.port} "
                f"did not complete within {self._config.connect_timeout}s"
            ) from exc

    def _begin_attempt(self) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        self._loop = loop
        waiter: asyncio.Future[None] = loop.create_future()
        self._ready = waiter

        if self._client is not None:
            # Network thread is already retrying; wait for its next result.
            return waiter

        self._state.set(ConnectionState.CONNECTING)
        self._logger.debug(
            "MQTT connect requested host=%s port=%s client_id=%s app_id=%s",
            self._config.host,
            self._config.port,
            self._config.client_id,
            self._config.app_id,
        )
        client = self._client_factory(self._config)
        client.enable_logger(self._logger)
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        try:
            client.connect_async(self._config.host, self._config.port, keepalive=self._config.keepalive)
            client.loop_start()
        except (OSError, ValueError) as exc:
            self._state.set(ConnectionState.OFFLINE)
            self._fail_waiter(BrokerConnectionError(f"MQTT client could not start: {exc}"))
            return waiter
        self._client = client
        return waiter

    async def stop(self) -> None:
        """Disconnect and stop the network thread."""
        client = self._client
        self._client = None
        self._state.set(ConnectionState.STOPPED)
        self._fail_waiter(BrokerConnectionError("MQTT broker stopped"))
        if client is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _shutdown_client, client)
        self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, topic: str, body: str) -> PublishAck:
        """Publish with QoS 1 and return once the broker acknowledges (PUBACK)."""
        client = self._client
        if client is None or not self.is_connected:
            raise BrokerConnectionError("MQTT session is not connected")

        try:
            info = client.publish(topic, body, qos=1)
        except (OSError, ValueError) as exc:
            raise PublishError(f"MQTT publish to {topic} failed: {exc}", channel=topic) from exc

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            reason = mqtt.error_string(info.rc)
            raise PublishError(
                f"MQTT publish to {topic} was not accepted: {reason}",
                upstream_detail=reason,
                channel=topic,
            )

        timeout = self._config.publish_timeout
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, info.wait_for_publish, timeout)
        except (RuntimeError, ValueError) as exc:
            raise PublishError(f"MQTT publish to {topic} failed: {exc}", channel=topic) from exc

        if not info.is_published():
            raise PublishError(
                f"No acknowledgement for message {info.mid} on {topic} within {timeout}s",
                upstream_detail="ack timeout",
                channel=topic,
            )
        self._logger.debug("MQTT message %s acknowledged on %s", info.mid, topic)
        return PublishAck(channel=topic, message_id=info.mid)

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _call_soon(self, fn: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(fn, *args)

    def _on_connect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._call_soon(self._handle_connect, reason_code)

    def _on_connect_fail(self, _client: mqtt.Client, _userdata: Any) -> None:
        self._call_soon(self._handle_connect_fail)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._call_soon(self._handle_disconnect, reason_code)

    # ------------------------------------------------------------------
    # Loop-side handlers
    # ------------------------------------------------------------------

    def _handle_connect(self, reason_code: Any) -> None:
        if self._state.current == ConnectionState.STOPPED:
            return
        if reason_code.value != 0:
            self._logger.warning("MQTT connect refused: %s", reason_code)
            self._state.set(ConnectionState.OFFLINE)
            self._fail_waiter(BrokerConnectionError(f"MQTT connect refused: {reason_code}"))
            return
        self._logger.debug("MQTT connected reason=%s", reason_code)
        self._state.set(ConnectionState.CONNECTED)
        waiter = self._ready
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    def _handle_connect_fail(self) -> None:
        if self._state.current == ConnectionState.STOPPED:
            return
        self._logger.warning(
            "MQTT connection to %s:%s failed; retrying every %ss",
            self._config.host,
            self._config.port,
            self._config.reconnect_interval,
        )
        self._state.set(ConnectionState.OFFLINE)
        self._fail_waiter(
            BrokerConnectionError(f"MQTT broker {self._config.host}:{self._config.port} unreachable")
        )

    def _handle_disconnect(self, reason_code: Any) -> None:
        if self._state.current == ConnectionState.STOPPED:
            return
        self._logger.warning(
            "MQTT disconnected (%s); reconnecting every %ss", reason_code, self._config.reconnect_interval
        )
        self._state.set(ConnectionState.RECONNECTING)

    def _fail_waiter(self, exc: BrokerConnectionError) -> None:
        waiter = self._ready
        if waiter is None or waiter.done():
            return
        waiter.set_exception(exc)
        # Mark retrieved: nobody may be awaiting this attempt any more.
        waiter.exception()


def _shutdown_client(client: mqtt.Client) -> None:
    try:
        client.disconnect()
    finally:
        client.loop_stop()
