"""Presentation layer for the miner monitor.

Only the pure view-model modules are re-exported here; the Qt widgets live in
:mod:`bitaxe_monitor.gui.main_window` and :mod:`bitaxe_monitor.gui.widgets`.
"""

from __future__ import annotations

from .model import (
    DeviceCard,
    FarmSummary,
    StatRow,
    StatSection,
    build_device_cards,
    build_farm_label,
    build_panel_label,
    build_stat_sections,
    panel_text,
    summarize_farm,
)

__all__ = [
    "DeviceCard",
    "FarmSummary",
    "StatRow",
    "StatSection",
    "build_device_cards",
    "build_farm_label",
    "build_panel_label",
    "build_stat_sections",
    "panel_text",
    "summarize_farm",
]
