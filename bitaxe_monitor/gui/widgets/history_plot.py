"""Matplotlib history plot of one device's series embedded in Qt."""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

import numpy as np
from PySide6.QtWidgets import QSizePolicy, QVBoxLayout, QWidget
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from bitaxe_monitor.telemetry.series import Sample

# metric -> (axis index, label, colour)
PLOTTED_METRICS = {
    "hashrate": (0, "Hashrate [GH/s]", "tab:blue"),
    "power": (1, "Power [W]", "tab:orange"),
    "asic_temp": (2, "ASIC [°C]", "tab:red"),
    "vrm_temp": (2, "VRM [°C]", "tab:green"),
}


def samples_to_arrays(samples: Sequence[Sample], origin: Optional[float] = None):
    """Return ``(seconds, values)`` arrays; gaps become NaN so lines break there."""
    if not samples:
        return np.array([]), np.array([])
    timestamps = np.fromiter((s.timestamp for s in samples), dtype=float, count=len(samples))
    values = np.fromiter(
        (np.nan if s.value is None else s.value for s in samples), dtype=float, count=len(samples)
    )
    base = timestamps[-1] if origin is None else origin
    return timestamps - base, values


class HistoryPlot(QWidget):
    """Hashrate, power and temperatures of the selected device over the window."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._figure = Figure(figsize=(6, 4))
        self._canvas = FigureCanvas(self._figure)
        self._canvas.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

        layout = QVBoxLayout()
        layout.addWidget(self._canvas)
        self.setLayout(layout)

        self._axes = [self._figure.add_subplot(311)]
        self._axes.append(self._figure.add_subplot(312, sharex=self._axes[0]))
        self._axes.append(self._figure.add_subplot(313, sharex=self._axes[0]))
        self._axes[-1].set_xlabel("Time [s]")

        self._lines = {}
        for metric, (index, label, color) in PLOTTED_METRICS.items():
            axis = self._axes[index]
            axis.grid(True, linestyle="--", linewidth=0.3)
            self._lines[metric] = axis.plot([], [], color=color, label=label)[0]
        for axis in self._axes:
            axis.legend(loc="upper left", fontsize="small")
        self._figure.tight_layout()

    def set_series(self, series: Mapping[str, Sequence[Sample]], window_seconds: float) -> None:
        latest = max((samples[-1].timestamp for samples in series.values() if samples), default=None)
        grouped: Dict[int, list] = {}
        for metric, line in self._lines.items():
            seconds, values = samples_to_arrays(series.get(metric, ()), origin=latest)
            line.set_data(seconds, values)
            grouped.setdefault(PLOTTED_METRICS[metric][0], []).append(values)

        self._axes[0].set_xlim(-window_seconds, 0.0)
        for index, arrays in grouped.items():
            values = np.concatenate(arrays) if arrays else np.array([])
            finite = values[np.isfinite(values)]
            if finite.size == 0:
                continue
            y_min, y_max = float(finite.min()), float(finite.max())
            if y_min == y_max:
                delta = max(1.0, abs(y_min) * 0.1)
                y_min -= delta
                y_max += delta
            margin = (y_max - y_min) * 0.05
            self._axes[index].set_ylim(y_min - margin, y_max + margin)

        self._canvas.draw_idle()
