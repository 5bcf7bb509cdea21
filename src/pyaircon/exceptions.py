"""Custom exception hierarchy for pyaircon."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar


class CommandOutcome(StrEnum):
    """What happened to the persisted state by the time an error surfaced."""

    NOT_APPLIED = "not_applied"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


class AirconError(Exception):
    """Base exception for all pyaircon errors.

    ``status_code`` is the HTTP-equivalent status a host should answer with.
    ``outcome`` tells the caller whether the local state was left untouched,
    changed and reverted, or changed with the reversion itself failing.
    """

    status_code: ClassVar[int] = 500

    def __init__(
        self,
        message: str,
        *,
        outcome: CommandOutcome = CommandOutcome.NOT_APPLIED,
        rollback_error: BaseException | None = None,
    ) -> None:
        self.outcome = outcome
        self.rollback_error = rollback_error
        super().__init__(message)

    @property
    def detail(self) -> str:
        """Human-readable detail; not a stable contract."""
        return str(self)

    @property
    def requires_reconciliation(self) -> bool:
        """Local state may differ from the device and needs a manual fix."""
        return self.outcome == CommandOutcome.ROLLBACK_FAILED

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.detail, "outcome": self.outcome.value}


class ConfigurationError(AirconError):
    """Invalid or missing configuration (fatal at startup)."""


class InvalidInputError(AirconError):
    """Caller supplied a malformed command."""

    status_code = 400


class StorageError(AirconError):
    """The external store failed or returned no row."""


class StateNotFoundError(StorageError):
    """The appliance state row does not exist."""


class NotSelectedError(AirconError):
    """No signal protocol is currently selected.

    A user-correctable precondition rather than a system fault.
    """

    status_code = 400


class BrokerError(AirconError):
    """Base for failures talking to the message broker."""

    status_code = 502


class BrokerConnectionError(BrokerError):
    """Broker unreachable, handshake refused or timed out."""

    status_code = 503


class PublishError(BrokerError):
    """Broker rejected the message or never acknowledged it."""

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_detail: str = "",
        channel: str = "",
    ) -> None:
        self.upstream_status = upstream_status
        self.upstream_detail = upstream_detail
        self.channel = channel
        super().__init__(message)


class DeviceCommunicationError(BrokerError):
    """Command could not be delivered to the device.

    Raised by the coordinator after compensation; the upstream broker error
    is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_detail: str = "",
        outcome: CommandOutcome = CommandOutcome.ROLLED_BACK,
        rollback_error: BaseException | None = None,
    ) -> None:
        self.upstream_status = upstream_status
        self.upstream_detail = upstream_detail
        super().__init__(message, outcome=outcome, rollback_error=rollback_error)

    @property
    def connection_failed(self) -> bool:
        """Whether the broker could not be reached at all."""
        return isinstance(self.__cause__, BrokerConnectionError)
