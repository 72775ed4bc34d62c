#!/usr/bin/env python3
"""Launch the Bitaxe monitor GUI."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path

from bitaxe_monitor.gui.main_window import run_gui
from bitaxe_monitor.io import SettingsStore, configure_logging
from bitaxe_monitor.orchestration import MonitorSession, SessionThread
from bitaxe_monitor.telemetry import TelemetryLogger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Settings file (default: config/settings.yml in the project root).",
    )
    parser.add_argument(
        "--log",
        action="store_true",
        help="Append every completed poll cycle to a CSV file under output/telemetry.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=500,
        help="Snapshot refresh interval of the window in milliseconds (default: 500).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    store = SettingsStore(args.settings)
    configure_logging(store.get_str("log_level") or "INFO")

    telemetry_logger = None
    if args.log:
        log_dir = Path("output/telemetry")
        log_dir.mkdir(parents=True, exist_ok=True)
        telemetry_logger = TelemetryLogger(log_dir / f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv")

    runner = SessionThread(MonitorSession(store, telemetry_logger=telemetry_logger))
    runner.start()
    try:
        run_gui(runner, snapshot_interval_ms=args.interval)
    finally:
        runner.stop()


if __name__ == "__main__":
    main()
