"""Temperature readings reported by the device."""

from __future__ import annotations

import enum

from pydantic import Field

from pyaircon.models._base import AirconBaseModel, UtcDatetime, utcnow


class TemperatureUnit(enum.StrEnum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


class TemperatureReading(AirconBaseModel):
    """Append-only temperature sample. Immutable once created."""

    id: str
    temperature: float
    unit: TemperatureUnit = TemperatureUnit.CELSIUS
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    created_at: UtcDatetime = Field(default_factory=utcnow)
