"""Qt main window showing the monitor session's snapshots."""

from __future__ import annotations

from typing import Dict, List, Optional

from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from bitaxe_monitor.devices.registry import ViewKind
from bitaxe_monitor.gui.model import DeviceCard, StatSection, build_device_cards, build_stat_sections, panel_text
from bitaxe_monitor.gui.widgets import HistoryPlot, SparklineWidget
from bitaxe_monitor.orchestration.runner import SessionThread
from bitaxe_monitor.orchestration.session import MonitorSnapshot


# ---------------------------------------------------------------------------
# Layout constants
WINDOW_DEFAULT_SIZE = (1200, 800)
SNAPSHOT_INTERVAL_MS = 500
FARM_ENTRY = "__farm__"

SPARKLINE_ROWS = (
    ("hashrate", "Hashrate", "#4fc3f7"),
    ("asic_temp", "ASIC Temp", "#ef5350"),
    ("vrm_temp", "VRM Temp", "#66bb6a"),
    ("power", "Power", "#ffa726"),
    ("efficiency", "Efficiency", "#ab47bc"),
    ("fan", "Fan", "#90a4ae"),
    ("error_rate", "Error Rate", "#ffee58"),
)


class ControlPane(QWidget):
    """Device selector plus refresh and pause buttons."""

    device_selected = Signal(str)
    refresh_requested = Signal()
    pause_toggled = Signal(bool)

    def __init__(self) -> None:
        super().__init__()
        self.device_combo = QComboBox()
        self.refresh_btn = QPushButton("Refresh")
        self.pause_btn = QPushButton("Pause")
        self.pause_btn.setCheckable(True)
        self.busy_label = QLabel()

        layout = QHBoxLayout()
        layout.addWidget(QLabel("View:"))
        layout.addWidget(self.device_combo, stretch=1)
        layout.addWidget(self.refresh_btn)
        layout.addWidget(self.pause_btn)
        layout.addWidget(self.busy_label)
        self.setLayout(layout)

        self.device_combo.currentIndexChanged.connect(self._on_index_changed)
        self.refresh_btn.clicked.connect(self.refresh_requested.emit)
        self.pause_btn.toggled.connect(self.pause_toggled.emit)

    def _on_index_changed(self, index: int) -> None:
        if index >= 0:
            self.device_selected.emit(self.device_combo.itemData(index))

    def update_state(self, snapshot: MonitorSnapshot) -> None:
        entries = []
        if len(snapshot.devices) >= 2:
            entries.append(("Farm", FARM_ENTRY))
        entries.extend((device.label, device.id) for device in snapshot.devices)
        current = FARM_ENTRY if snapshot.view.kind is ViewKind.FARM else snapshot.view.device_id

        self.device_combo.blockSignals(True)
        existing = [(self.device_combo.itemText(i), self.device_combo.itemData(i)) for i in range(self.device_combo.count())]
        if existing != entries:
            self.device_combo.clear()
            for text, data in entries:
                self.device_combo.addItem(text, data)
        index = self.device_combo.findData(current)
        if index >= 0:
            self.device_combo.setCurrentIndex(index)
        self.device_combo.blockSignals(False)

        self.pause_btn.blockSignals(True)
        self.pause_btn.setChecked(snapshot.paused)
        self.pause_btn.setText("Resume" if snapshot.paused else "Pause")
        self.pause_btn.blockSignals(False)
        self.refresh_btn.setEnabled(not snapshot.paused and bool(snapshot.devices))
        self.busy_label.setText("Polling..." if snapshot.busy else "")


class StatsPane(QGroupBox):
    """Section/label/value table for the selected device."""

    def __init__(self) -> None:
        super().__init__("Device Stats")
        self.table = QTableWidget(0, 2)
        self.table.setHorizontalHeaderLabels(["Stat", "Value"])
        self.table.verticalHeader().setVisible(False)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionMode(QTableWidget.NoSelection)
        layout = QVBoxLayout()
        layout.addWidget(self.table)
        self.setLayout(layout)

    def update_sections(self, sections: List[StatSection]) -> None:
        row_count = sum(len(section.rows) + 1 for section in sections)
        self.table.setRowCount(row_count)
        row = 0
        for section in sections:
            header = QTableWidgetItem(section.title)
            font = header.font()
            font.setBold(True)
            header.setFont(font)
            self.table.setItem(row, 0, header)
            self.table.setItem(row, 1, QTableWidgetItem(""))
            row += 1
            for stat in section.rows:
                self.table.setItem(row, 0, QTableWidgetItem(stat.label))
                value_item = QTableWidgetItem(stat.value)
                value_item.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
                self.table.setItem(row, 1, value_item)
                row += 1
        self.table.resizeColumnsToContents()


class FarmPane(QGroupBox):
    """One row per device in the farm view."""

    HEADERS = ["Device", "State", "Hashrate", "Temp", "Power", "Efficiency"]

    def __init__(self) -> None:
        super().__init__("Farm")
        self.table = QTableWidget(0, len(self.HEADERS))
        self.table.setHorizontalHeaderLabels(self.HEADERS)
        self.table.verticalHeader().setVisible(False)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionMode(QTableWidget.NoSelection)
        layout = QVBoxLayout()
        layout.addWidget(self.table)
        self.setLayout(layout)

    def update_cards(self, cards: List[DeviceCard]) -> None:
        self.table.setRowCount(len(cards))
        for idx, card in enumerate(cards):
            values = [card.label, card.state.value, card.hashrate, card.temperature, card.power, card.efficiency]
            for col, text in enumerate(values):
                self.table.setItem(idx, col, QTableWidgetItem(text))
        self.table.resizeColumnsToContents()


class SparklinePane(QGroupBox):
    """Sparkline per metric for the selected device."""

    def __init__(self) -> None:
        super().__init__("Recent History")
        self.sparklines: Dict[str, SparklineWidget] = {}
        layout = QFormLayout()
        for metric, label, color in SPARKLINE_ROWS:
            widget = SparklineWidget(color)
            self.sparklines[metric] = widget
            layout.addRow(label, widget)
        self.setLayout(layout)

    def update_series(self, snapshot: MonitorSnapshot, device_id: Optional[str]) -> None:
        series = snapshot.device_series(device_id) if device_id else {}
        for metric, widget in self.sparklines.items():
            widget.set_samples(series.get(metric, ()), snapshot.window_seconds)


class MonitorWindow(QMainWindow):
    """Main window; reads snapshots only and forwards commands as signals."""

    device_selected = Signal(str)
    refresh_requested = Signal()
    pause_toggled = Signal(bool)

    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Bitaxe Monitor")
        self.resize(*WINDOW_DEFAULT_SIZE)
        self._last_cycle = -1

        self.summary_label = QLabel("No IP set")
        font = self.summary_label.font()
        font.setPointSize(font.pointSize() + 4)
        self.summary_label.setFont(font)
        self.control_pane = ControlPane()
        self.stats_pane = StatsPane()
        self.farm_pane = FarmPane()
        self.sparkline_pane = SparklinePane()
        self.history_plot = HistoryPlot()

        left_widget = QWidget()
        left_layout = QVBoxLayout()
        left_layout.addWidget(self.summary_label)
        left_layout.addWidget(self.control_pane)
        left_layout.addWidget(self.stats_pane)
        left_layout.addWidget(self.farm_pane)
        left_widget.setLayout(left_layout)

        right_widget = QWidget()
        right_layout = QVBoxLayout()
        right_layout.addWidget(self.sparkline_pane)
        right_layout.addWidget(self.history_plot, stretch=1)
        right_widget.setLayout(right_layout)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(left_widget)
        splitter.addWidget(right_widget)
        self.setCentralWidget(splitter)

        self.control_pane.device_selected.connect(self.device_selected.emit)
        self.control_pane.refresh_requested.connect(self.refresh_requested.emit)
        self.control_pane.pause_toggled.connect(self.pause_toggled.emit)

    def update_snapshot(self, snapshot: MonitorSnapshot) -> None:
        settings = snapshot.settings
        self.summary_label.setText(panel_text(snapshot, settings))
        self.control_pane.update_state(snapshot)

        farm = snapshot.view.kind is ViewKind.FARM
        device_id = None if farm else snapshot.view.device_id
        unit = settings.get("hashrate_unit", "auto")
        self.farm_pane.setVisible(farm)
        self.stats_pane.setVisible(not farm)
        if farm:
            self.farm_pane.update_cards(build_device_cards(snapshot, unit))
        else:
            self.stats_pane.update_sections(build_stat_sections(snapshot.stats.get(device_id), unit))
        self.sparkline_pane.update_series(snapshot, device_id)
        if snapshot.cycles_completed != self._last_cycle:
            self._last_cycle = snapshot.cycles_completed
            series = snapshot.device_series(device_id) if device_id else {}
            self.history_plot.set_series(series, snapshot.window_seconds)


def run_gui(runner: SessionThread, snapshot_interval_ms: int = SNAPSHOT_INTERVAL_MS) -> None:
    """Show the window and poll ``runner.snapshot`` until the window closes."""
    app = QApplication.instance() or QApplication([])
    session = runner.session
    window = MonitorWindow()

    def refresh() -> None:
        window.update_snapshot(runner.snapshot)

    def handle_selection(entry: str) -> None:
        if entry == FARM_ENTRY:
            runner.call(session.select_farm)
        else:
            runner.call(session.select_device, entry)

    timer = QTimer()
    timer.timeout.connect(refresh)
    timer.start(snapshot_interval_ms)

    window.device_selected.connect(handle_selection)
    window.refresh_requested.connect(lambda: runner.call(session.refresh_now))
    window.pause_toggled.connect(lambda paused: runner.call(session.set_paused, paused))
    app.aboutToQuit.connect(timer.stop)

    window.show()
    refresh()
    app.exec()
