"""Time-windowed telemetry series for sparkline plotting."""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from bitaxe_monitor.telemetry.stats import DeviceStats, field_number, resolve_efficiency

MAX_SAMPLES = 1200
MIN_WINDOW_SECONDS = 30.0
DEFAULT_WINDOW_SECONDS = 300.0
FLAT_RANGE_EPSILON = 1e-6

Point = Tuple[float, float]
Clock = Callable[[], float]


@dataclass(frozen=True)
class Sample:
    """One reading; ``value`` is ``None`` when the metric was unavailable."""

    timestamp: float
    value: Optional[float] = None


@dataclass(frozen=True)
class RenderGeometry:
    """Plot coordinates for one buffer at a given pixel size.

    ``segments`` are polylines split at gaps; a one-point segment is drawn as a dot.
    ``time_span`` is ``(start, length)`` of the mapped horizontal axis in seconds.
    """

    segments: Tuple[Tuple[Point, ...], ...] = ()
    latest_point: Optional[Point] = None
    value_range: Optional[Tuple[float, float]] = None
    time_span: Optional[Tuple[float, float]] = None

    @property
    def is_empty(self) -> bool:
        return not self.segments


def _normalize(value: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _clamp01(value: float) -> float:
    return 0.0 if value < 0.0 else 1.0 if value > 1.0 else value


@dataclass
class TimeSeriesBuffer:
    """Bounded, time-windowed sequence of samples for one metric."""

    window_seconds: float = DEFAULT_WINDOW_SECONDS
    max_points: int = MAX_SAMPLES
    clock: Clock = time.monotonic
    dirty: bool = False
    _samples: Deque[Sample] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.window_seconds = max(MIN_WINDOW_SECONDS, float(self.window_seconds))

    def push(self, value: Optional[float]) -> Sample:
        sample = Sample(timestamp=self.clock(), value=_normalize(value))
        self._samples.append(sample)
        self._prune(sample.timestamp)
        self.dirty = True
        return sample

    def set_window_seconds(self, seconds: float) -> None:
        self.window_seconds = max(MIN_WINDOW_SECONDS, float(seconds))
        self._prune(self.clock())
        self.dirty = True

    def clear(self) -> None:
        self._samples.clear()
        self.dirty = True

    def consume_dirty(self) -> bool:
        """Return whether the buffer changed since the last call, resetting the flag."""
        dirty, self.dirty = self.dirty, False
        return dirty

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        # The newest sample always survives so a stale lone reading still draws.
        while len(self._samples) > 1 and self._samples[0].timestamp < cutoff:
            self._samples.popleft()
        while len(self._samples) > self.max_points:
            self._samples.popleft()

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def latest(self) -> Optional[Sample]:
        return self._samples[-1] if self._samples else None

    def snapshot(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    def to_dict_of_lists(self) -> Dict[str, List[float]]:
        timestamps = []
        values = []
        for sample in self._samples:
            timestamps.append(sample.timestamp)
            values.append(sample.value if sample.value is not None else float("nan"))
        return {"timestamp": timestamps, "value": values}

    def compute_render_geometry(self, width: float, height: float, padding: float = 2.0) -> RenderGeometry:
        return compute_render_geometry(self._samples, self.window_seconds, width, height, padding)


def compute_render_geometry(
    samples: Iterable[Sample],
    window_seconds: float,
    width: float,
    height: float,
    padding: float = 2.0,
) -> RenderGeometry:
    """Map samples onto a ``width`` x ``height`` pixel box; pure and deterministic."""
    samples = tuple(samples)
    if not samples:
        return RenderGeometry()

    oldest = samples[0].timestamp
    newest = samples[-1].timestamp
    observed = newest - oldest
    if observed < window_seconds:
        span_start, span_length = oldest, observed
    else:
        span_start, span_length = newest - window_seconds, window_seconds

    finite = [s.value for s in samples if s.value is not None]
    if not finite:
        return RenderGeometry(time_span=(span_start, span_length))

    low, high = min(finite), max(finite)
    if high - low < FLAT_RANGE_EPSILON:
        low -= 1.0
        high += 1.0
    value_range = high - low

    inner_width = max(0.0, width - 2 * padding)
    inner_height = max(0.0, height - 2 * padding)

    segments: List[Tuple[Point, ...]] = []
    current: List[Point] = []
    latest: Optional[Point] = None
    for sample in samples:
        if sample.value is None:
            if current:
                segments.append(tuple(current))
                current = []
            continue
        fraction = _clamp01((sample.timestamp - span_start) / span_length) if span_length > 0 else 1.0
        point = (
            padding + fraction * inner_width,
            padding + ((high - sample.value) / value_range) * inner_height,
        )
        current.append(point)
        latest = point
    if current:
        segments.append(tuple(current))

    return RenderGeometry(
        segments=tuple(segments),
        latest_point=latest,
        value_range=(low, high),
        time_span=(span_start, span_length),
    )


# metric key -> extractor over one poll's stats
SPARKLINE_METRICS: Dict[str, Callable[[Mapping], float]] = {
    "hashrate": lambda stats: field_number(stats, "hashRate"),
    "asic_temp": lambda stats: field_number(stats, "temp"),
    "vrm_temp": lambda stats: field_number(stats, "vrTemp"),
    "power": lambda stats: field_number(stats, "power"),
    "efficiency": resolve_efficiency,
    "fan": lambda stats: field_number(stats, "fanrpm"),
    "error_rate": lambda stats: field_number(stats, "errorPercentage"),
}

SeriesKey = Tuple[str, str]


class SeriesBank:
    """All sparkline buffers of a session, keyed by ``(device_id, metric)``."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_points: int = MAX_SAMPLES,
        clock: Clock = time.monotonic,
        metrics: Optional[Mapping[str, Callable[[Mapping], float]]] = None,
    ) -> None:
        self.window_seconds = max(MIN_WINDOW_SECONDS, float(window_seconds))
        self.max_points = max_points
        self.clock = clock
        self.metrics = dict(metrics or SPARKLINE_METRICS)
        self._buffers: Dict[SeriesKey, TimeSeriesBuffer] = {}

    def get(self, device_id: str, metric: str) -> TimeSeriesBuffer:
        key = (device_id, metric)
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = TimeSeriesBuffer(
                window_seconds=self.window_seconds,
                max_points=self.max_points,
                clock=self.clock,
            )
            self._buffers[key] = buffer
        return buffer

    def find(self, device_id: str, metric: str) -> Optional[TimeSeriesBuffer]:
        return self._buffers.get((device_id, metric))

    def device_series(self, device_id: str) -> Dict[str, TimeSeriesBuffer]:
        return {metric: buf for (dev, metric), buf in self._buffers.items() if dev == device_id}

    def push_stats(self, device_id: str, stats: DeviceStats) -> List[Tuple[str, Sample]]:
        pushed = []
        for metric, extract in self.metrics.items():
            pushed.append((metric, self.get(device_id, metric).push(extract(stats))))
        return pushed

    def push_gap(self, device_id: str) -> List[Tuple[str, Sample]]:
        return [(metric, buf.push(None)) for metric, buf in self.device_series(device_id).items()]

    def clear_device(self, device_id: str) -> None:
        for buf in self.device_series(device_id).values():
            buf.clear()

    def drop_device(self, device_id: str) -> None:
        for key in [key for key in self._buffers if key[0] == device_id]:
            del self._buffers[key]

    def retain(self, device_ids: Iterable[str]) -> None:
        keep = set(device_ids)
        for device_id in {dev for dev, _ in self._buffers} - keep:
            self.drop_device(device_id)

    def set_window_seconds(self, seconds: float) -> None:
        self.window_seconds = max(MIN_WINDOW_SECONDS, float(seconds))
        for buf in self._buffers.values():
            buf.set_window_seconds(self.window_seconds)

    def snapshot(self) -> Dict[SeriesKey, Tuple[Sample, ...]]:
        return {key: buf.snapshot() for key, buf in self._buffers.items()}

    def __len__(self) -> int:
        return len(self._buffers)
