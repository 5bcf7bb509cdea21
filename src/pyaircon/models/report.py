"""Webhook payloads pushed by the broker on behalf of the device."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError, field_validator

from pyaircon.exceptions import InvalidInputError
from pyaircon.models._base import UtcDatetime
from pyaircon.models.temperature import TemperatureUnit


class DeviceReport(BaseModel):
    """Sensor report: a temperature sample plus, optionally, the device's power state."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    temperature: float
    unit: TemperatureUnit = TemperatureUnit.CELSIUS
    timestamp: UtcDatetime | None = None
    aircon_state: StrictBool | None = None

    @field_validator("temperature", mode="before")
    @classmethod
    def _require_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("temperature must be a number")
        return value

    @field_validator("unit", mode="before")
    @classmethod
    def _lenient_unit(cls, value: Any) -> TemperatureUnit:
        # Anything other than an explicit fahrenheit is treated as celsius.
        if isinstance(value, str) and value.strip().lower() == TemperatureUnit.FAHRENHEIT:
            return TemperatureUnit.FAHRENHEIT
        return TemperatureUnit.CELSIUS

    @field_validator("aircon_state", mode="before")
    @classmethod
    def _ignore_non_bool_state(cls, value: Any) -> Any:
        return value if isinstance(value, bool) else None

    @classmethod
    def from_body(cls, body: Any) -> DeviceReport:
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            errors = exc.errors()
            loc = errors[0]["loc"] if errors else ()
            field = str(loc[0]) if loc else "temperature"
            if field == "temperature":
                raise InvalidInputError("temperature value is required and must be a number") from exc
            raise InvalidInputError(f"{field} is invalid: {errors[0]['msg']}") from exc
