from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from pyaircon.broker.base import ConnectionState
from pyaircon.coordinator import CommandCoordinator
from pyaircon.exceptions import (
    BrokerConnectionError,
    CommandOutcome,
    DeviceCommunicationError,
    InvalidInputError,
    NotSelectedError,
    PublishError,
    StorageError,
)
from pyaircon.models.command import PublishAck
from pyaircon.models.protocol import SignalProtocol
from pyaircon.models.report import DeviceReport
from pyaircon.models.state import ApplianceState
from pyaircon.models.temperature import TemperatureUnit
from pyaircon.publisher import BrokerPublisher
from pyaircon.resolver import ProtocolResolver
from pyaircon.store import InMemoryStore

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


@dataclass
class FakeBroker:
    control_channel: str = "aircon/control"
    state: ConnectionState = ConnectionState.CONNECTED
    publish_error: Exception | None = None
    ready_error: Exception | None = None
    published: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    ready_calls: int = 0

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def ensure_ready(self) -> None:
        self.ready_calls += 1
        if self.ready_error is not None:
            raise self.ready_error

    async def publish(self, topic: str, body: str) -> PublishAck:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, json.loads(body)))
        return PublishAck(channel=topic, status_code=200)


class FlakyStore(InMemoryStore):
    """Fails the Nth state write (1-based)."""

    def __init__(self, *args: Any, fail_on_write: int, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._fail_on_write = fail_on_write
        self._attempts = 0
        self.update_ids: list[str] = []

    async def update_state(self, state_id: str, **kwargs: Any) -> ApplianceState:
        self._attempts += 1
        self.update_ids.append(state_id)
        if self._attempts == self._fail_on_write:
            raise RuntimeError("connection reset by store")
        return await super().update_state(state_id, **kwargs)


def _nec(selected: bool = True) -> SignalProtocol:
    return SignalProtocol(id="p1", name="NEC", summary="NEC 38kHz", protocol_type="IR", is_selected=selected)


def _store(*, selected: bool = True) -> InMemoryStore:
    return InMemoryStore(
        state=ApplianceState(id="state-1", is_on=False, last_updated=T0),
        protocols=[_nec(selected), SignalProtocol(id="p2", name="RC5", protocol_type="IR")],
    )


def _coordinator(store: InMemoryStore, broker: FakeBroker, **kwargs: Any) -> CommandCoordinator:
    return CommandCoordinator(store, ProtocolResolver(store), BrokerPublisher(broker), **kwargs)


@pytest.mark.asyncio
async def test_successful_publish_commits_requested_state() -> None:
    store = _store()
    broker = FakeBroker()

    result = await _coordinator(store, broker).set_power(True)

    assert result.is_on is True
    assert result.last_updated > T0
    assert (await store.get_state()) == result

    assert len(broker.published) == 1
    channel, message = broker.published[0]
    assert channel == "aircon/control"
    assert message["is_on"] is True
    assert message["protocol"] == {"id": "p1", "name": "NEC", "protocol_type": "IR"}
    assert datetime.fromisoformat(message["timestamp"]).tzinfo is not None


@pytest.mark.asyncio
async def test_actor_is_recorded_on_success() -> None:
    store = _store()

    result = await _coordinator(store, FakeBroker()).set_power(True, actor="user-42")

    assert result.updated_by == "user-42"


@pytest.mark.asyncio
async def test_no_selected_protocol_rolls_back_and_reports_not_selected() -> None:
    store = _store(selected=False)
    broker = FakeBroker()

    with pytest.raises(NotSelectedError) as exc_info:
        await _coordinator(store, broker).set_power(True)

    exc = exc_info.value
    assert exc.outcome == CommandOutcome.ROLLED_BACK
    assert exc.status_code == 400
    assert not exc.requires_reconciliation
    state = await store.get_state()
    assert state.is_on is False
    assert state.last_updated > T0
    assert broker.published == []
    # persist + compensate
    assert store.state_writes == 2


@pytest.mark.asyncio
async def test_publish_failure_rolls_back_and_wraps_upstream_detail() -> None:
    store = _store()
    upstream = PublishError(
        "NETPIE API request failed with status 500: boom",
        upstream_status=500,
        upstream_detail="boom",
        channel="aircon/control",
    )
    broker = FakeBroker(publish_error=upstream)

    with pytest.raises(DeviceCommunicationError) as exc_info:
        await _coordinator(store, broker).set_power(True)

    exc = exc_info.value
    assert exc.__cause__ is upstream
    assert exc.upstream_status == 500
    assert exc.upstream_detail == "boom"
    assert "boom" in exc.detail
    assert exc.outcome == CommandOutcome.ROLLED_BACK
    assert exc.connection_failed is False
    assert (await store.get_state()).is_on is False


@pytest.mark.asyncio
async def test_unreachable_broker_rolls_back() -> None:
    store = _store()
    broker = FakeBroker(ready_error=BrokerConnectionError("MQTT broker mqtt.netpie.io:1883 unreachable"))

    with pytest.raises(DeviceCommunicationError) as exc_info:
        await _coordinator(store, broker).set_power(True)

    assert exc_info.value.connection_failed is True
    assert exc_info.value.outcome == CommandOutcome.ROLLED_BACK
    assert (await store.get_state()).is_on is False


@pytest.mark.asyncio
async def test_non_boolean_input_is_rejected_without_writes() -> None:
    store = _store()
    broker = FakeBroker()
    coordinator = _coordinator(store, broker)

    with pytest.raises(InvalidInputError) as exc_info:
        await coordinator.submit({"is_on": "yes"})
    assert exc_info.value.status_code == 400
    assert exc_info.value.outcome == CommandOutcome.NOT_APPLIED

    with pytest.raises(InvalidInputError):
        await coordinator.set_power("yes")  # type: ignore[arg-type]

    with pytest.raises(InvalidInputError):
        await coordinator.submit({})

    assert store.state_writes == 0
    assert broker.ready_calls == 0


@pytest.mark.asyncio
async def test_submit_accepts_boolean_body() -> None:
    store = _store()

    result = await _coordinator(store, FakeBroker()).submit({"is_on": True})

    assert result.is_on is True


@pytest.mark.asyncio
async def test_repeating_a_command_publishes_each_time() -> None:
    store = _store()
    broker = FakeBroker()
    coordinator = _coordinator(store, broker)

    first = await coordinator.set_power(True)
    second = await coordinator.set_power(True)

    assert first.is_on is second.is_on is True
    assert second.last_updated > first.last_updated
    assert len(broker.published) == 2


@pytest.mark.asyncio
async def test_last_updated_strictly_increases_with_a_stalled_clock() -> None:
    store = _store()
    coordinator = _coordinator(store, FakeBroker(), clock=lambda: T0)

    first = await coordinator.set_power(True)
    second = await coordinator.set_power(False)

    assert T0 < first.last_updated < second.last_updated


@pytest.mark.asyncio
async def test_failed_rollback_is_flagged_for_reconciliation() -> None:
    store = FlakyStore(
        state=ApplianceState(id="state-1", is_on=False, last_updated=T0),
        protocols=[_nec()],
        fail_on_write=2,
    )
    broker = FakeBroker(publish_error=PublishError("timeout", upstream_detail="ack timeout"))

    with pytest.raises(DeviceCommunicationError) as exc_info:
        await _coordinator(store, broker).set_power(True)

    exc = exc_info.value
    assert exc.outcome == CommandOutcome.ROLLBACK_FAILED
    assert exc.requires_reconciliation is True
    assert isinstance(exc.rollback_error, RuntimeError)
    assert isinstance(exc.__cause__, PublishError)
    # the compensating write targeted the row captured at read time
    assert store.update_ids == ["state-1", "state-1"]
    assert (await store.get_state()).is_on is True


@pytest.mark.asyncio
async def test_failed_initial_write_changes_nothing() -> None:
    store = FlakyStore(
        state=ApplianceState(id="state-1", is_on=False, last_updated=T0),
        protocols=[_nec()],
        fail_on_write=1,
    )
    broker = FakeBroker()

    with pytest.raises(StorageError) as exc_info:
        await _coordinator(store, broker).set_power(True)

    assert exc_info.value.outcome == CommandOutcome.NOT_APPLIED
    assert broker.ready_calls == 0
    assert (await store.get_state()).is_on is False


@pytest.mark.asyncio
async def test_missing_state_row_is_a_storage_error() -> None:
    store = InMemoryStore(protocols=[_nec()])

    with pytest.raises(StorageError):
        await _coordinator(store, FakeBroker()).set_power(True)


@pytest.mark.asyncio
async def test_serialized_commands_do_not_interleave() -> None:
    store = _store()
    observed: list[bool] = []

    class SlowBroker(FakeBroker):
        async def publish(self, topic: str, body: str) -> PublishAck:
            await asyncio.sleep(0)
            observed.append((await store.get_state()).is_on)
            return await super().publish(topic, body)

    coordinator = _coordinator(store, SlowBroker(), serialize=True)

    await asyncio.gather(coordinator.set_power(True), coordinator.set_power(False))

    assert observed == [True, False]
    assert (await store.get_state()).is_on is False


@pytest.mark.asyncio
async def test_device_report_records_temperature_and_confirmed_state() -> None:
    store = _store()
    broker = FakeBroker()
    coordinator = _coordinator(store, broker)

    report = DeviceReport.from_body({"temperature": 86.0, "unit": "fahrenheit", "aircon_state": True})
    reading, state = await coordinator.apply_device_report(report)

    assert reading.temperature == 86.0
    assert reading.unit == TemperatureUnit.FAHRENHEIT
    assert state is not None
    assert state.is_on is True
    assert state.last_updated > T0
    assert broker.published == []
    assert len(store.readings) == 1


@pytest.mark.asyncio
async def test_device_report_without_state_leaves_row_untouched() -> None:
    store = _store()
    coordinator = _coordinator(store, FakeBroker())

    reading, state = await coordinator.apply_device_report(
        DeviceReport.from_body({"temperature": 24.5, "timestamp": "2026-01-01T12:30:00Z"})
    )

    assert state is None
    assert reading.timestamp == T0 + timedelta(minutes=30)
    assert store.state_writes == 0


@dataclass
class HangingBroker(FakeBroker):
    """Holds every publish until ``release`` is set."""

    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def publish(self, topic: str, body: str) -> PublishAck:
        await self.release.wait()
        return await super().publish(topic, body)


@pytest.mark.asyncio
async def test_caller_deadline_does_not_skip_compensation() -> None:
    store = _store()
    broker = HangingBroker(publish_error=PublishError("broker went away"))
    coordinator = _coordinator(store, broker)

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(coordinator.set_power(True), 0.05)

    # publish still pending in the background
    assert (await store.get_state()).is_on is True

    broker.release.set()
    await coordinator.drain()

    state = await store.get_state()
    assert state.is_on is False
    assert store.state_writes == 2


@pytest.mark.asyncio
async def test_caller_deadline_lets_publish_complete() -> None:
    store = _store()
    broker = HangingBroker()
    coordinator = _coordinator(store, broker)

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(coordinator.set_power(True), 0.05)

    broker.release.set()
    await coordinator.drain()

    assert (await store.get_state()).is_on is True
    assert len(broker.published) == 1
    assert store.state_writes == 1


@pytest.mark.asyncio
async def test_device_report_without_state_row_keeps_reading() -> None:
    store = InMemoryStore(protocols=[_nec()])

    reading, state = await _coordinator(store, FakeBroker()).apply_device_report(
        DeviceReport.from_body({"temperature": 22.0, "aircon_state": True})
    )

    assert state is None
    assert reading.temperature == 22.0
    assert len(store.readings) == 1
