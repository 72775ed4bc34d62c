"""Small QPainter sparkline drawing a :class:`RenderGeometry`."""

from __future__ import annotations

from typing import Optional, Sequence

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from bitaxe_monitor.telemetry.series import DEFAULT_WINDOW_SECONDS, RenderGeometry, Sample, compute_render_geometry

SPARKLINE_MIN_SIZE = (120, 28)
SPARKLINE_PADDING = 3.0
LINE_WIDTH = 1.5
DOT_RADIUS = 1.5
LATEST_RADIUS = 2.5


class SparklineWidget(QWidget):
    """Renders one metric's recent history; geometry is recomputed on every paint."""

    def __init__(self, color: str = "#4fc3f7", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._color = QColor(color)
        self._samples: Sequence[Sample] = ()
        self._window_seconds = DEFAULT_WINDOW_SECONDS
        self.setMinimumSize(*SPARKLINE_MIN_SIZE)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)

    def set_samples(self, samples: Sequence[Sample], window_seconds: float) -> None:
        if tuple(samples) == tuple(self._samples) and window_seconds == self._window_seconds:
            return
        self._samples = tuple(samples)
        self._window_seconds = window_seconds
        self.update()

    def geometry_for_size(self) -> RenderGeometry:
        return compute_render_geometry(
            self._samples, self._window_seconds, self.width(), self.height(), SPARKLINE_PADDING
        )

    def paintEvent(self, event) -> None:  # noqa: N802 - Qt naming
        geometry = self.geometry_for_size()
        if geometry.is_empty:
            return
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)

        pen = QPen(self._color, LINE_WIDTH)
        pen.setCapStyle(Qt.RoundCap)
        pen.setJoinStyle(Qt.RoundJoin)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        for segment in geometry.segments:
            if len(segment) == 1:
                x, y = segment[0]
                painter.setBrush(self._color)
                painter.drawEllipse(QPointF(x, y), DOT_RADIUS, DOT_RADIUS)
                painter.setBrush(Qt.NoBrush)
                continue
            path = QPainterPath(QPointF(*segment[0]))
            for x, y in segment[1:]:
                path.lineTo(x, y)
            painter.drawPath(path)

        if geometry.latest_point is not None:
            painter.setPen(Qt.NoPen)
            painter.setBrush(self._color.lighter(140))
            painter.drawEllipse(QPointF(*geometry.latest_point), LATEST_RADIUS, LATEST_RADIUS)
        painter.end()
