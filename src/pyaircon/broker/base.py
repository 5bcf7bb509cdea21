"""Broker capability shared by the REST and MQTT variants."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import Protocol

from pyaircon.models.command import PublishAck


class ConnectionState(enum.StrEnum):
    """Observable connection lifecycle. Diagnostics only."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    OFFLINE = "offline"
    STOPPED = "stopped"


StateListener = Callable[[ConnectionState], None]


class Broker(Protocol):
    """Structural broker interface used by :class:`~pyaircon.publisher.BrokerPublisher`.

    ``control_channel`` is the fixed routing address for power commands in
    the variant's own addressing scheme.
    """

    control_channel: str

    @property
    def state(self) -> ConnectionState:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def ensure_ready(self) -> None:
        ...

    async def publish(self, topic: str, body: str) -> PublishAck:
        ...


class StateTracker:
    """Holds the current :class:`ConnectionState` and notifies a listener on change."""

    def __init__(self, name: str, listener: StateListener | None, logger: logging.Logger) -> None:
        self._name = name
        self._listener = listener
        self._logger = logger
        self.current = ConnectionState.IDLE

    def set(self, state: ConnectionState) -> None:
        previous = self.current
        if previous == state:
            return
        self.current = state
        self._logger.debug("%s broker state %s -> %s", self._name, previous, state)
        if self._listener is not None:
            try:
                self._listener(state)
            except Exception:
                self._logger.debug("on_state_change callback failed", exc_info=True)
