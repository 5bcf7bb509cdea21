"""Helpers for safe debug logging.

Broker credentials travel in request headers and MQTT connection settings.
Everything that is logged at DEBUG level goes through :func:`redact_for_log`
first.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "key",
    }
)

_REDACTED = "<redacted>"


def _mask_credential(key: str, value: Any) -> str:
    # Keep the auth scheme ("Device ...") so the header shape stays visible.
    if key.lower() == "authorization" and isinstance(value, str) and " " in value:
        scheme, _, _ = value.partition(" ")
        return f"{scheme} {_REDACTED}"
    return _REDACTED


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Mappings have credential-like keys masked, pydantic models are dumped
    first, long strings are truncated.
    """
    if _depth > 10:
        return "<max-depth>"

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): (
                _mask_credential(str(k), v)
                if str(k).lower() in _SENSITIVE_VALUE_KEYS
                else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            )
            for k, v in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
