from __future__ import annotations

from pyaircon._redact import redact_for_log
from pyaircon.models import PublishAck


def test_redact_for_log_masks_credentials() -> None:
    payload = {
        "client_id": "client-123",
        "token": "token-abc",
        "secret": "s3cr3t",
        "headers": {"Authorization": "Device client-123:token-abc", "Content-Type": "application/json"},
        "mqtt": [{"key": "device-key", "alias": "livingroom"}],
    }

    redacted = redact_for_log(payload)

    assert redacted["client_id"] == "client-123"
    assert redacted["token"] == "<redacted>"
    assert redacted["secret"] == "<redacted>"
    assert redacted["headers"]["Authorization"] == "Device <redacted>"
    assert redacted["headers"]["Content-Type"] == "application/json"
    assert redacted["mqtt"][0] == {"key": "<redacted>", "alias": "livingroom"}


def test_redact_for_log_truncates_long_strings() -> None:
    redacted = redact_for_log({"value": "x" * 600}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_dumps_models_and_bytes() -> None:
    assert redact_for_log(PublishAck(channel="aircon/control", status_code=200)) == {
        "channel": "aircon/control",
        "status_code": 200,
        "message_id": None,
        "detail": {},
    }
    assert redact_for_log(b"\x00\x01\x02") == "<bytes:3b>"
