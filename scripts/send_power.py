#!/usr/bin/env python3
"""Send a single power command to the aircon through NETPIE.

Credentials come from the usual ``NETPIE_*`` environment variables. The
appliance state lives in an in-memory store seeded with one row and one
selected protocol, so this exercises the broker path end to end without a
database.

Examples::

    NETPIE_CLIENT_ID=... NETPIE_TOKEN=... scripts/send_power.py on
    NETPIE_BROKER_MODE=mqtt NETPIE_APP_ID=... NETPIE_KEY=... \\
        NETPIE_SECRET=... NETPIE_ALIAS=... scripts/send_power.py off -v
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyaircon import (  # noqa: E402
    AirconClient,
    AirconConfig,
    AirconError,
    ApplianceState,
    BrokerMode,
    InMemoryStore,
    SignalProtocol,
)
from pyaircon.models._base import utcnow  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish one aircon power command via NETPIE.",
    )
    parser.add_argument(
        "power",
        choices=("on", "off"),
        help="Requested power state.",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in BrokerMode],
        default=None,
        help="Override NETPIE_BROKER_MODE.",
    )
    parser.add_argument(
        "--protocol",
        default="NEC",
        help="Name of the IR protocol to send with the command.",
    )
    parser.add_argument(
        "--protocol-type",
        default="IR",
        help="Protocol type sent with the command.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


async def _send(config: AirconConfig, args: argparse.Namespace) -> ApplianceState:
    store = InMemoryStore(
        state=ApplianceState(id="local", is_on=args.power == "off", last_updated=utcnow()),
        protocols=[
            SignalProtocol(
                id="local",
                name=args.protocol,
                protocol_type=args.protocol_type,
                is_selected=True,
            )
        ],
    )
    async with AirconClient(config, store, on_state_change=lambda s: print(f"[send] broker {s}")) as client:
        return await client.set_power(args.power == "on", actor="send_power")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"broker_mode": BrokerMode(args.mode)} if args.mode else {}
    try:
        config = AirconConfig.from_env(**overrides)
        state = asyncio.run(_send(config, args))
    except AirconError as exc:
        print(f"[send] Failed: {exc}", file=sys.stderr)
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 2

    print(json.dumps(state.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
