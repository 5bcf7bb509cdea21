"""Base model and timestamp coercion shared by all pyaircon models.

Every row model inherits from :class:`AirconBaseModel` which provides:

* frozen instances (rows are replaced, never mutated in place)
* ``extra="ignore"`` so store rows with additional columns still load
* a :data:`UtcDatetime` annotated type that accepts ISO-8601 strings,
  epoch seconds/milliseconds and naive datetimes, always yielding an
  aware UTC datetime
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> Any:
    """Coerce *value* into an aware UTC datetime where possible.

    Values pydantic cannot interpret are passed through unchanged so the
    field validator reports them.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return value
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings / epoch numbers to aware UTC datetimes."""


class AirconBaseModel(BaseModel):
    """Base for rows read from, and written to, the external store."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
