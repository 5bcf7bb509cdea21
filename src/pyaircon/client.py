"""High-level async facade wiring broker, store and coordinator together."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pyaircon._redact import redact_for_log
from pyaircon.broker import Broker, create_broker
from pyaircon.broker.base import ConnectionState, StateListener
from pyaircon.broker.mqtt import ClientFactory
from pyaircon.config import AirconConfig
from pyaircon.coordinator import CommandCoordinator
from pyaircon.models.report import DeviceReport
from pyaircon.models.state import ApplianceState
from pyaircon.models.temperature import TemperatureReading
from pyaircon.publisher import BrokerPublisher
from pyaircon.resolver import ProtocolResolver
from pyaircon.store import ApplianceStore

_logger = logging.getLogger(__name__)


class AirconClient:
    """Async entry point for the aircon command path.

    Usage::

        async with AirconClient(AirconConfig.from_env(), store) as client:
            state = await client.set_power(True)

    The broker is built (and its credentials validated) in the constructor,
    so a misconfigured process fails before any network I/O. Pass *broker*
    to substitute a fake in tests.
    """

    def __init__(
        self,
        config: AirconConfig,
        store: ApplianceStore,
        *,
        broker: Broker | None = None,
        session: aiohttp.ClientSession | None = None,
        mqtt_client_factory: ClientFactory | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._broker = broker or create_broker(
            config,
            http_session=session,
            mqtt_client_factory=mqtt_client_factory,
            on_state_change=on_state_change,
        )
        self._publisher = BrokerPublisher(self._broker)
        self._resolver = ProtocolResolver(store)
        self._coordinator = CommandCoordinator(
            store,
            self._resolver,
            self._publisher,
            serialize=config.serialize_commands,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AirconClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Open the broker connection.

        A failure here is logged, not raised: the next command goes through
        ``ensure_ready`` and reports the problem to its caller.
        """
        try:
            await self._broker.start()
        except Exception:
            _logger.warning("Broker start failed; will retry on first command", exc_info=True)

    async def stop(self) -> None:
        """Let background commands settle, then close the broker."""
        await self._coordinator.drain()
        await self._broker.stop()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def broker(self) -> Broker:
        return self._broker

    @property
    def broker_state(self) -> ConnectionState:
        return self._broker.state

    @property
    def coordinator(self) -> CommandCoordinator:
        return self._coordinator

    @property
    def resolver(self) -> ProtocolResolver:
        return self._resolver

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_state(self) -> ApplianceState:
        return await self._store.get_state()

    async def set_power(self, is_on: bool, *, actor: str | None = None) -> ApplianceState:
        return await self._coordinator.set_power(is_on, actor=actor)

    async def submit(self, body: Any, *, actor: str | None = None) -> ApplianceState:
        """Apply a raw ``{"is_on": bool}`` request body."""
        return await self._coordinator.submit(body, actor=actor)

    async def ingest_report(self, body: Any) -> tuple[TemperatureReading, ApplianceState | None]:
        """Apply a raw webhook body sent by the broker for the device."""
        _logger.debug("Received NETPIE webhook: %s", redact_for_log(body))
        return await self._coordinator.apply_device_report(DeviceReport.from_body(body))
