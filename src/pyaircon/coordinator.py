"""Power command coordination with compensating rollback.

A power change is a two-step transaction across a network boundary:
persist the intended state locally, then publish the command to the
broker. If anything after the local write fails, the write is reverted so
the stored state never claims something the device was not asked to do.

Phases::

    idle -> state_persisted -> protocol_resolved -> published -> committed
                   \\                   \\
                    +-------------------+--> rolled_back

Each command runs in its own task. Cancelling the
caller (for example through ``asyncio.wait_for``) stops the wait, not the
command: the publish finishes or fails and is compensated in the
background. :meth:`CommandCoordinator.drain` waits for such commands.

Known limitations:

* There is no durable intent log: a crash between the local write and the
  compensating write leaves the row diverged from the device.
* With the MQTT broker an unacknowledged QoS 1 message stays in paho's
  in-flight queue and is resent after a reconnect. If the coordinator has
  already rolled back by then, the device may still apply the command
  while the row says otherwise.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from pyaircon.exceptions import (
    AirconError,
    BrokerError,
    CommandOutcome,
    DeviceCommunicationError,
    InvalidInputError,
    StateNotFoundError,
    StorageError,
)
from pyaircon.models._base import utcnow
from pyaircon.models.command import ControlCommand, PowerCommandRequest, ProtocolRef
from pyaircon.models.report import DeviceReport
from pyaircon.models.state import ApplianceState
from pyaircon.models.temperature import TemperatureReading
from pyaircon.publisher import BrokerPublisher
from pyaircon.resolver import ProtocolResolver
from pyaircon.store import ApplianceStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class CommandPhase(enum.StrEnum):
    IDLE = "idle"
    STATE_PERSISTED = "state_persisted"
    PROTOCOL_RESOLVED = "protocol_resolved"
    PUBLISHED = "published"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


async def _store_call(description: str, fn: Callable[[], Awaitable[T]]) -> T:
    """Run a store operation, normalising backend faults to :class:`StorageError`."""
    try:
        return await fn()
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(f"Failed to {description}: {exc}") from exc


class CommandCoordinator:
    """Owns every mutation of the appliance state row.

    Parameters
    ----------
    store : ApplianceStore
        External store holding the state row and protocol catalog.
    resolver : ProtocolResolver
        Looks up the selected protocol.
    publisher : BrokerPublisher
        Delivers commands to the broker.
    clock : callable
        Returns the current aware UTC datetime.
    serialize : bool
        Hold a per-coordinator lock across the whole sequence. Use when the
        store cannot do conditional updates and concurrent commands must
        not interleave.
    """

    def __init__(
        self,
        store: ApplianceStore,
        resolver: ProtocolResolver,
        publisher: BrokerPublisher,
        *,
        clock: Callable[[], datetime] = utcnow,
        serialize: bool = False,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._publisher = publisher
        self._clock = clock
        self._lock = asyncio.Lock() if serialize else None
        self._inflight: set[asyncio.Task[ApplianceState]] = set()

    @contextlib.asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return
        async with self._lock:
            yield

    # ------------------------------------------------------------------
    # Power commands
    # ------------------------------------------------------------------

    async def submit(self, body: Any, *, actor: str | None = None) -> ApplianceState:
        """Validate an inbound ``{"is_on": bool}`` body and apply it."""
        request = PowerCommandRequest.from_body(body)
        return await self.set_power(request.is_on, actor=actor)

    async def set_power(self, is_on: bool, *, actor: str | None = None) -> ApplianceState:
        """Switch the appliance on or off.

        Returns the persisted row on success. On failure the raised
        :class:`AirconError` has ``outcome`` set to ``not_applied``,
        ``rolled_back`` or ``rollback_failed``; the last one also carries
        ``rollback_error`` and reports ``requires_reconciliation``.

        Publishing is never retried here. If the caller is cancelled the
        command keeps running to its outcome; see :meth:`drain`.
        """
        if not isinstance(is_on, bool):
            raise InvalidInputError("is_on must be a boolean")
        task = asyncio.create_task(self._run_exclusive(is_on, actor))
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            _logger.warning("Aircon command caller cancelled; finishing is_on=%s in the background", is_on)
            raise

    async def drain(self) -> None:
        """Wait until every command still running in the background has settled."""
        pending = list(self._inflight)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _forget(self, task: asyncio.Task[ApplianceState]) -> None:
        self._inflight.discard(task)
        # Outcome is logged by _run; mark it retrieved for orphaned tasks.
        if not task.cancelled():
            task.exception()

    async def _run_exclusive(self, is_on: bool, actor: str | None) -> ApplianceState:
        async with self._exclusive():
            return await self._run(is_on, actor)

    async def _run(self, is_on: bool, actor: str | None) -> ApplianceState:
        phase = CommandPhase.IDLE

        prior = await _store_call("fetch aircon state", self._store.get_state)
        persisted = await _store_call(
            "update aircon state",
            lambda: self._store.update_state(
                prior.id,
                is_on=is_on,
                last_updated=prior.next_timestamp(self._clock()),
                updated_by=actor,
            ),
        )
        phase = self._advance(phase, CommandPhase.STATE_PERSISTED, persisted)

        try:
            protocol = await self._resolver.get_selected()
            phase = self._advance(phase, CommandPhase.PROTOCOL_RESOLVED, persisted)

            command = ControlCommand(
                is_on=is_on,
                protocol=ProtocolRef.from_protocol(protocol),
                timestamp=self._clock(),
            )
            try:
                await self._publisher.publish(command)
            except BrokerError as exc:
                raise DeviceCommunicationError(
                    f"Failed to send command to device: {exc}",
                    upstream_status=getattr(exc, "upstream_status", None),
                    upstream_detail=getattr(exc, "upstream_detail", "") or str(exc),
                ) from exc
            phase = self._advance(phase, CommandPhase.PUBLISHED, persisted)
        except AirconError as exc:
            await self._compensate(prior, persisted, exc)
            self._advance(phase, CommandPhase.ROLLED_BACK, persisted)
            raise

        self._advance(phase, CommandPhase.COMMITTED, persisted)
        return persisted

    @staticmethod
    def _advance(current: CommandPhase, target: CommandPhase, state: ApplianceState) -> CommandPhase:
        _logger.debug("Aircon command on row %s: %s -> %s", state.id, current, target)
        return target

    async def _compensate(self, prior: ApplianceState, persisted: ApplianceState, error: AirconError) -> None:
        """Revert the row to ``prior.is_on``; record the result on *error*.

        A failing revert is logged and attached to *error* but never
        replaces it.
        """
        _logger.warning(
            "Aircon command failed (%s); reverting row %s to is_on=%s",
            error,
            prior.id,
            prior.is_on,
        )
        try:
            await self._store.update_state(
                prior.id,
                is_on=prior.is_on,
                last_updated=persisted.next_timestamp(self._clock()),
                updated_by=prior.updated_by,
            )
        except Exception as rollback_exc:
            _logger.error(
                "Failed to revert aircon state row %s to is_on=%s; manual reconciliation required",
                prior.id,
                prior.is_on,
                exc_info=True,
            )
            error.outcome = CommandOutcome.ROLLBACK_FAILED
            error.rollback_error = rollback_exc
            return
        error.outcome = CommandOutcome.ROLLED_BACK

    # ------------------------------------------------------------------
    # Device reports
    # ------------------------------------------------------------------

    async def apply_device_report(self, report: DeviceReport) -> tuple[TemperatureReading, ApplianceState | None]:
        """Store a webhook report.

        The temperature sample is always appended. A reported power state is
        a remote-confirmed mutation: it is persisted without publishing.
        """
        reading = await _store_call(
            "store temperature data",
            lambda: self._store.add_temperature(
                temperature=report.temperature,
                unit=report.unit,
                timestamp=report.timestamp or self._clock(),
            ),
        )

        if report.aircon_state is None:
            return reading, None

        async with self._exclusive():
            try:
                current = await _store_call("fetch aircon state", self._store.get_state)
            except StateNotFoundError:
                _logger.debug("No aircon state row; ignoring reported is_on=%s", report.aircon_state)
                return reading, None
            updated = await _store_call(
                "update aircon state",
                lambda: self._store.update_state(
                    current.id,
                    is_on=bool(report.aircon_state),
                    last_updated=current.next_timestamp(self._clock()),
                    updated_by=current.updated_by,
                ),
            )
        _logger.debug("Device reported aircon is_on=%s", updated.is_on)
        return reading, updated
