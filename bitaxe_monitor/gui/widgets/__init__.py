"""Custom widgets used by the GUI."""

from .history_plot import HistoryPlot
from .sparkline import SparklineWidget

__all__ = ["HistoryPlot", "SparklineWidget"]
