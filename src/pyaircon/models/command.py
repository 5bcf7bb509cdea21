"""Power command payloads: inbound request, broker message and ack.

``ControlCommand`` is ephemeral; it is never persisted, only serialized
onto the broker's aircon control channel.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from pyaircon.exceptions import InvalidInputError
from pyaircon.models._base import UtcDatetime, utcnow
from pyaircon.models.protocol import SignalProtocol


class PowerCommandRequest(BaseModel):
    """Inbound ``{"is_on": <bool>}`` body.

    ``StrictBool`` rejects ``"yes"``, ``1`` and friends.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    is_on: StrictBool

    @classmethod
    def from_body(cls, body: Any) -> PowerCommandRequest:
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            raise InvalidInputError("is_on must be a boolean") from exc


class ProtocolRef(BaseModel):
    """The subset of a :class:`SignalProtocol` sent to the device."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    protocol_type: str

    @classmethod
    def from_protocol(cls, protocol: SignalProtocol) -> ProtocolRef:
        return cls(id=protocol.id, name=protocol.name, protocol_type=protocol.protocol_type)


class ControlCommand(BaseModel):
    """Message published to the broker for a power change."""

    model_config = ConfigDict(frozen=True)

    is_on: bool
    protocol: ProtocolRef
    timestamp: UtcDatetime = Field(default_factory=utcnow)

    def to_message(self) -> dict[str, Any]:
        """Message body with the timestamp rendered as ISO-8601."""
        return {
            "is_on": self.is_on,
            "protocol": self.protocol.model_dump(),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Canonical (compact, key-ordered) JSON encoding of :meth:`to_message`."""
        return json.dumps(self.to_message(), separators=(",", ":"), sort_keys=True)


class PublishAck(BaseModel):
    """Broker acknowledgement of a published command."""

    model_config = ConfigDict(frozen=True)

    channel: str
    status_code: int | None = None
    message_id: int | None = None
    detail: dict[str, Any] = Field(default_factory=dict)
