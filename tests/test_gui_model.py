from bitaxe_monitor.devices import ConnectionState, Device, View
from bitaxe_monitor.gui import (
    build_device_cards,
    build_farm_label,
    build_panel_label,
    build_stat_sections,
    panel_text,
    summarize_farm,
)
from bitaxe_monitor.io import DEFAULT_SETTINGS
from bitaxe_monitor.orchestration import MonitorSnapshot

STATS = {"hashRate": 550, "power": 12.0, "temp": 58}


def settings(**overrides):
    merged = dict(DEFAULT_SETTINGS)
    merged.update(overrides)
    return merged


def section_map(sections):
    return {section.title: section for section in sections}


def test_stat_sections_render_key_metrics():
    sections = section_map(build_stat_sections(STATS))
    assert sections["Hashrate"].value("hashrate") == "0.55 TH/s"
    assert sections["Temperature"].value("asicTemp") == "58°C"
    assert sections["Performance"].value("efficiency") == "45.83 GH/W"
    assert sections["Power"].value("power") == "12.00W"
    assert sections["Pool"].value("pool") == "Not connected"
    assert "Voltage Rails" not in sections


def test_stat_sections_without_stats_are_placeholders():
    sections = build_stat_sections(None)
    assert [section.title for section in sections] == [
        "Hashrate",
        "Temperature",
        "Power",
        "Performance",
        "Pool",
        "Shares",
        "System",
        "Network",
    ]
    assert all(row.value == "--" for section in sections for row in section.rows)


def test_voltage_rails_section_follows_power():
    stats = dict(STATS, voltageRails={"vcore": 1150, "3v3": 3.3})
    titles = [section.title for section in build_stat_sections(stats)]
    assert titles[titles.index("Power") + 1] == "Voltage Rails"
    rails = section_map(build_stat_sections(stats))["Voltage Rails"]
    assert [row.value for row in rails.rows] == ["3.30 V", "1150 mV"]


def test_panel_label_parts_and_sentinels():
    assert build_panel_label(STATS, settings()) == "0.55 TH/s | 58°C | 12.0W"
    assert build_panel_label(STATS, settings(custom_separator="•", show_power=False)) == "0.55 TH/s • 58°C"
    nothing = settings(show_hashrate=False, show_temperature=False, show_power=False)
    assert build_panel_label(STATS, nothing) == "Bitaxe"
    assert build_panel_label(None, settings(), ConnectionState.UNCONFIGURED) == "No IP set"
    assert build_panel_label(None, settings(), ConnectionState.CONNECTING) == "Connecting..."
    assert build_panel_label(None, settings(), ConnectionState.DISCONNECTED) == "Disconnected"


def test_farm_summary_counts_live_devices_only():
    devices = [Device("a", address="A"), Device("b", address="B"), Device("c", address="C")]
    stats = {
        "a": dict(STATS, sharesAccepted=10),
        "b": {"hashRate": 450, "power": 10.0, "temp": 61, "shares": {"accepted": 5, "rejected": 1}},
        "c": None,
    }
    summary = summarize_farm(devices, stats)

    assert (summary.total, summary.online) == (3, 2)
    assert summary.hashrate == 1000
    assert summary.power == 22.0
    assert summary.max_temp == 61
    assert (summary.accepted, summary.rejected) == (15, 1)
    assert round(summary.efficiency, 2) == 45.45
    assert build_farm_label(summary, settings()) == "2/3 online | 1.00 TH/s | 22.0W"


def test_panel_text_follows_view_and_mode():
    devices = (Device("a", "Alpha", "A"), Device("b", "Beta", "B"))
    snapshot = MonitorSnapshot(
        view=View.farm(),
        devices=devices,
        stats={"a": STATS, "b": None},
        states={"a": ConnectionState.ONLINE, "b": ConnectionState.DISCONNECTED},
    )
    assert panel_text(snapshot, settings()) == "1/2 online | 0.55 TH/s | 12.0W"
    assert panel_text(snapshot, settings(panel_display_mode="selected")) == "0.55 TH/s | 58°C | 12.0W"

    single_b = MonitorSnapshot(view=View.single("b"), devices=devices, stats=snapshot.stats, states=snapshot.states)
    assert panel_text(single_b, settings()) == "Disconnected"
    assert panel_text(MonitorSnapshot(view=View.empty()), settings()) == "No IP set"

    cards = build_device_cards(snapshot)
    assert [card.label for card in cards] == ["Alpha", "Beta"]
    assert cards[0].efficiency == "45.83 GH/W"
    assert cards[1].hashrate == "--"
