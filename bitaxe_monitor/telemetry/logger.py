"""CSV session log of polled metrics."""

from __future__ import annotations

import csv
import math
import time
from pathlib import Path
from typing import Mapping, Optional

from bitaxe_monitor.telemetry.series import SPARKLINE_METRICS
from bitaxe_monitor.telemetry.stats import DeviceStats

COLUMNS = ["timestamp", "device_id", *SPARKLINE_METRICS.keys()]


class TelemetryLogger:
    """Append-only CSV logger, one row per device per completed cycle."""

    def __init__(self, path: Path, write_header: bool = True) -> None:
        self.path = path
        self._file = None
        self._writer = None
        self._write_header = write_header

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        exists = self.path.exists()
        self._file = self.path.open("a", newline="")
        self._writer = csv.writer(self._file)
        if self._write_header and not exists:
            self._writer.writerow(COLUMNS)

    def close(self) -> None:
        if self._file:
            self._file.close()
        self._file = None
        self._writer = None

    def log(self, device_id: str, stats: Optional[DeviceStats], timestamp: Optional[float] = None) -> None:
        if not self._writer:
            self.open()
        row = [f"{time.time() if timestamp is None else timestamp:.3f}", device_id]
        for extract in SPARKLINE_METRICS.values():
            value = extract(stats) if stats is not None else float("nan")
            row.append(f"{value:.3f}" if math.isfinite(value) else "")
        self._writer.writerow(row)
        self._file.flush()

    def log_cycle(self, results: Mapping[str, Optional[DeviceStats]], timestamp: Optional[float] = None) -> None:
        stamp = time.time() if timestamp is None else timestamp
        for device_id, stats in results.items():
            self.log(device_id, stats, timestamp=stamp)

