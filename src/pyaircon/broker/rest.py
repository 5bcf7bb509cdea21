"""Stateless NETPIE REST broker (one authenticated PUT per message).

There is no session to keep alive: "ready" means holding a credential
pair, which is validated once at construction.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from pyaircon._constants import AIRCON_CONTROL_TOPIC
from pyaircon._redact import redact_for_log
from pyaircon.broker.base import ConnectionState, StateListener, StateTracker
from pyaircon.config import RestBrokerConfig
from pyaircon.exceptions import ConfigurationError, PublishError
from pyaircon.models.command import PublishAck

_logger = logging.getLogger(__name__)


class RestBroker:
    """Publishes through ``PUT {base_url}/device/message/<topic>``.

    The REST API adds the ``@msg/`` prefix itself, so topics are given
    without it.
    """

    control_channel = AIRCON_CONTROL_TOPIC

    def __init__(
        self,
        config: RestBrokerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        if not config.client_id or not config.token:
            raise ConfigurationError(
                "NETPIE configuration is incomplete. "
                "Please check your environment variables (NETPIE_CLIENT_ID, NETPIE_TOKEN)."
            )
        self._config = config
        self._external_session = session is not None
        self._http = session
        self._state = StateTracker("REST", on_state_change, _logger)

    @property
    def state(self) -> ConnectionState:
        return self._state.current

    def _auth_header(self) -> str:
        # NETPIE 2020 expects the pair in plain text, not base64.
        return f"Device {self._config.client_id}:{self._config.token}"

    async def start(self) -> None:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        self._state.set(ConnectionState.CONNECTED)

    async def stop(self) -> None:
        http = self._http
        if not self._external_session:
            self._http = None
            if http is not None:
                await http.close()
        self._state.set(ConnectionState.STOPPED)

    async def ensure_ready(self) -> None:
        """No-op once started; starts lazily otherwise."""
        if self._http is None or self._state.current != ConnectionState.CONNECTED:
            await self.start()

    async def publish(self, topic: str, body: str) -> PublishAck:
        await self.ensure_ready()
        http = self._http
        assert http is not None  # noqa: S101

        url = f"{self._config.base_url}/device/message/{topic}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": self._auth_header(),
        }
        _logger.debug("PUT %s headers=%s body=%s", url, redact_for_log(headers), body)

        try:
            async with http.put(
                url,
                data=body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            # TimeoutError has an empty str().
            reason = str(exc) or type(exc).__name__
            raise PublishError(
                f"NETPIE publish to {topic} failed: {reason}",
                upstream_detail=reason,
                channel=topic,
            ) from exc

        if not 200 <= status < 300:
            raise PublishError(
                f"NETPIE API request failed with status {status}: {text[:200]}",
                upstream_status=status,
                upstream_detail=text[:200],
                channel=topic,
            )

        detail: dict[str, Any] = {}
        try:
            parsed = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError:
            parsed = {"raw": text[:200]}
        if isinstance(parsed, dict):
            detail = parsed
        _logger.debug("NETPIE published to %s: status=%s detail=%s", topic, status, redact_for_log(detail))
        return PublishAck(channel=topic, status_code=status, detail=detail)
