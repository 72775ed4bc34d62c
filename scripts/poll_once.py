#!/usr/bin/env python3
"""Poll every configured miner once and print the results."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from bitaxe_monitor.api import HttpMinerClient
from bitaxe_monitor.devices import DeviceRegistry
from bitaxe_monitor.gui import build_panel_label, build_stat_sections
from bitaxe_monitor.io import SettingsStore, configure_logging
from bitaxe_monitor.polling import FetchCoordinator, TelemetryContext
from bitaxe_monitor.telemetry import SeriesBank


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--settings", type=Path, default=None, help="Settings file to read devices from.")
    parser.add_argument("--address", action="append", default=[], help="Poll this address instead (repeatable).")
    parser.add_argument("--timeout", type=float, default=5.0, help="Per-request timeout in seconds (default: 5).")
    parser.add_argument("--details", action="store_true", help="Print every stat section, not just the summary.")
    return parser.parse_args()


async def poll(args: argparse.Namespace, store: SettingsStore) -> int:
    registry = DeviceRegistry(None if args.address else store)
    if args.address:
        for address in args.address:
            registry.add(address, address)
    else:
        registry.load_from_store()
    if not registry.pollable():
        print("No devices configured.")
        return 1

    client = HttpMinerClient(timeout=args.timeout)
    coordinator = FetchCoordinator(TelemetryContext(registry=registry, series=SeriesBank()), client)
    try:
        await coordinator.poll_all()
    finally:
        await client.aclose()

    settings = store.as_dict()
    for device in registry.devices:
        stats = registry.latest_stats(device.id)
        label = build_panel_label(stats, settings, registry.connection_state(device.id))
        print(f"{device.label} ({device.address or '-'}): {label}")
        if args.details and stats is not None:
            for section in build_stat_sections(stats, settings.get("hashrate_unit", "auto")):
                print(f"  {section.title}")
                for row in section.rows:
                    print(f"    {row.label:<14} {row.value}")
    return 0 if registry.online_ids() else 2


def main() -> None:
    args = parse_args()
    store = SettingsStore(args.settings)
    configure_logging(store.get_str("log_level") or "INFO")
    raise SystemExit(asyncio.run(poll(args, store)))


if __name__ == "__main__":
    main()
