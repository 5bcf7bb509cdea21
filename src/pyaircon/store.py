"""External store interface and an in-memory implementation.

The dashboard's relational store owns three tables (``aircon_state``,
``ir_protocols``, ``temperature_readings``). This library only needs the
handful of operations below; :class:`ApplianceStore` captures them so any
backend can be plugged in. :class:`InMemoryStore` is the reference
implementation used for embedding and tests.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from pyaircon.exceptions import StateNotFoundError, StorageError
from pyaircon.models.protocol import SignalProtocol
from pyaircon.models.state import ApplianceState
from pyaircon.models.temperature import TemperatureReading, TemperatureUnit


class ApplianceStore(Protocol):
    """Structural store interface used by the coordinator and resolver.

    Implementations raise :class:`StorageError` for any backend fault and
    :class:`StateNotFoundError` when the state row is missing.
    ``update_state`` must target the given row identity, never "whatever
    row is current".
    """

    async def get_state(self) -> ApplianceState:
        ...

    async def update_state(
        self,
        state_id: str,
        *,
        is_on: bool,
        last_updated: datetime,
        updated_by: str | None = None,
    ) -> ApplianceState:
        ...

    async def get_selected_protocol(self) -> SignalProtocol | None:
        ...

    async def add_temperature(
        self,
        *,
        temperature: float,
        unit: TemperatureUnit,
        timestamp: datetime,
    ) -> TemperatureReading:
        ...


class InMemoryStore:
    """Process-local store. Each operation is atomic under one lock."""

    def __init__(
        self,
        state: ApplianceState | None = None,
        protocols: Iterable[SignalProtocol] = (),
    ) -> None:
        self._state = state
        self._protocols: dict[str, SignalProtocol] = {p.id: p for p in protocols}
        selected = [p.id for p in self._protocols.values() if p.is_selected]
        if len(selected) > 1:
            raise StorageError(f"More than one protocol selected: {selected}")
        self._readings: list[TemperatureReading] = []
        self._lock = asyncio.Lock()
        self.state_writes = 0

    @property
    def readings(self) -> list[TemperatureReading]:
        return list(self._readings)

    async def get_state(self) -> ApplianceState:
        async with self._lock:
            if self._state is None:
                raise StateNotFoundError("No aircon state row exists")
            return self._state

    async def update_state(
        self,
        state_id: str,
        *,
        is_on: bool,
        last_updated: datetime,
        updated_by: str | None = None,
    ) -> ApplianceState:
        async with self._lock:
            if self._state is None or self._state.id != state_id:
                raise StateNotFoundError(f"Aircon state row {state_id!r} not found")
            self._state = self._state.model_copy(
                update={"is_on": is_on, "last_updated": last_updated, "updated_by": updated_by}
            )
            self.state_writes += 1
            return self._state

    async def get_selected_protocol(self) -> SignalProtocol | None:
        async with self._lock:
            for protocol in self._protocols.values():
                if protocol.is_selected:
                    return protocol
            return None

    async def add_temperature(
        self,
        *,
        temperature: float,
        unit: TemperatureUnit,
        timestamp: datetime,
    ) -> TemperatureReading:
        async with self._lock:
            reading = TemperatureReading(
                id=str(uuid.uuid4()),
                temperature=temperature,
                unit=unit,
                timestamp=timestamp,
            )
            self._readings.append(reading)
            return reading
