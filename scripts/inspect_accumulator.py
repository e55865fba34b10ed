#!/usr/bin/env python
"""Print the persisted bandwidth accumulator without disturbing a running collector.

The document is read under the same shared advisory lock the service uses, so
a concurrent save is never observed half-written.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from vpnmeter.accounting.models import BandwidthMetrics
from vpnmeter.accounting.store import JsonFileAccumulatorStore
from vpnmeter.core.config import ACCUMULATOR_FILENAME, get_settings
from vpnmeter.core.errors import PersistenceError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the persisted bandwidth accumulator")
    parser.add_argument(
        "--storage-path",
        type=Path,
        default=None,
        help="Directory containing accumulator.json (defaults to the configured bandwidth storage path)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full document as JSON instead of a summary",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    storage_dir = args.storage_path or get_settings().bandwidth_storage_path
    store = JsonFileAccumulatorStore(storage_dir / ACCUMULATOR_FILENAME)

    try:
        state = store.load()
    except PersistenceError as exc:
        print(f"Cannot read accumulator: {exc}", file=sys.stderr)
        return 1

    if state is None:
        print(f"No accumulator at {store.path}")
        return 0

    if args.json:
        print(json.dumps(state.to_dict(), indent=2))
        return 0

    metrics = BandwidthMetrics.from_accumulator(state)
    print(f"Accumulator:     {store.path}")
    print(f"Last updated:    {state.last_updated.isoformat()}")
    print(f"Last reset:      {state.last_reset_at.isoformat()}")
    print(
        f"OpenVPN:         sent={metrics.openvpn.total_bytes_sent} "
        f"received={metrics.openvpn.total_bytes_received} "
        f"({metrics.openvpn.total_bandwidth_mb:.2f} MB, "
        f"{metrics.openvpn.session_count} completed sessions, "
        f"{metrics.openvpn.active_clients} active)"
    )
    print(
        f"IPsec:           sent={metrics.ipsec.total_bytes_sent} "
        f"received={metrics.ipsec.total_bytes_received} "
        f"({metrics.ipsec.total_bandwidth_mb:.2f} MB)"
    )
    print(f"Combined:        {metrics.combined_total_mb:.2f} MB")
    for name, client in sorted(state.client_states.items()):
        print(
            f"  {name:<24} {client.real_address:<24} "
            f"sent={client.bytes_sent} received={client.bytes_received} "
            f"since={client.connected_since.isoformat()}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
