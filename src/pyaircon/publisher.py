"""Serializes power commands and publishes them on the aircon control channel."""

from __future__ import annotations

import logging

from pyaircon.broker.base import Broker
from pyaircon.exceptions import BrokerError, PublishError
from pyaircon.models.command import ControlCommand, PublishAck

_logger = logging.getLogger(__name__)


class BrokerPublisher:
    """Delivers :class:`ControlCommand` messages through a :class:`Broker`.

    The routing address is the broker's fixed ``control_channel``; callers
    cannot redirect power commands elsewhere.
    """

    def __init__(self, broker: Broker) -> None:
        self._broker = broker

    @property
    def channel(self) -> str:
        return self._broker.control_channel

    async def publish(self, command: ControlCommand) -> PublishAck:
        """Publish *command*.

        Raises :class:`BrokerConnectionError` when the broker cannot be
        reached and :class:`PublishError` for any other delivery failure.
        """
        await self._broker.ensure_ready()

        channel = self.channel
        body = command.to_json()
        _logger.debug("Publishing to %s: %s", channel, body)
        try:
            ack = await self._broker.publish(channel, body)
        except BrokerError:
            raise
        except Exception as exc:
            raise PublishError(f"NETPIE publish failed: {exc}", channel=channel) from exc
        _logger.debug("Published to %s: %s", channel, ack)
        return ack
