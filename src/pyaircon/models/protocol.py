"""Infrared signal protocol catalog rows."""

from __future__ import annotations

from pydantic import Field

from pyaircon.models._base import AirconBaseModel, UtcDatetime, utcnow


class SignalProtocol(AirconBaseModel):
    """A signal-encoding profile from the ``ir_protocols`` catalog.

    At most one row in the catalog has ``is_selected`` set; the store
    enforces that, this library only reads it.
    """

    id: str
    name: str
    summary: str = ""
    protocol_type: str
    frequency_khz: float | None = None
    is_selected: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
