"""Resolves the currently selected signal protocol."""

from __future__ import annotations

import logging

from pyaircon.exceptions import NotSelectedError, StorageError
from pyaircon.models.protocol import SignalProtocol
from pyaircon.store import ApplianceStore

_logger = logging.getLogger(__name__)


class ProtocolResolver:
    def __init__(self, store: ApplianceStore) -> None:
        self._store = store

    async def get_selected(self) -> SignalProtocol:
        """Return the selected protocol with a single store lookup.

        Raises :class:`NotSelectedError` when none is selected, which is a
        precondition the user can fix, distinct from a :class:`StorageError`.
        """
        try:
            protocol = await self._store.get_selected_protocol()
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to fetch selected IR protocol: {exc}") from exc

        if protocol is None:
            raise NotSelectedError("No IR protocol selected. Please select a protocol first.")
        _logger.debug("Selected IR protocol id=%s name=%s", protocol.id, protocol.name)
        return protocol
