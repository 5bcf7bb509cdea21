"""Appliance power state (the singleton ``aircon_state`` row)."""

from __future__ import annotations

from datetime import datetime, timedelta

from pyaircon.models._base import AirconBaseModel, UtcDatetime

#: Smallest step used to keep ``last_updated`` strictly increasing.
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


class ApplianceState(AirconBaseModel):
    """Current on/off state of the air conditioner.

    Exactly one row exists. ``last_updated`` strictly increases with every
    accepted mutation, whether issued locally or reported by the device.
    """

    id: str
    is_on: bool
    last_updated: UtcDatetime
    updated_by: str | None = None

    def next_timestamp(self, now: datetime) -> datetime:
        """Return a ``last_updated`` value that is strictly after the current one."""
        return max(now, self.last_updated + TIMESTAMP_RESOLUTION)
