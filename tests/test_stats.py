import math

from bitaxe_monitor.telemetry.stats import (
    EFFICIENCY_PATHS,
    SHARES_ACCEPTED_PATHS,
    field_text,
    resolve_efficiency,
    resolve_wifi_rssi,
    stat_number,
    stat_value,
    to_number,
    voltage_rails,
)


def test_to_number_coercion():
    assert to_number(12) == 12.0
    assert to_number(" 4.5 ") == 4.5
    assert to_number(True) == 1.0
    assert math.isnan(to_number(None))
    assert to_number("", 0.0) == 0.0
    assert to_number("abc", -1.0) == -1.0
    assert to_number(float("inf"), 0.0) == 0.0
    assert to_number([1], 7.0) == 7.0
    assert math.isnan(to_number(10**400))
    assert to_number(-(10**400), 0.0) == 0.0


def test_stat_value_first_present_alias_wins():
    stats = {"shares": {"accepted": 12}, "sharesAccepted": 99}
    assert stat_value(stats, SHARES_ACCEPTED_PATHS) == 12
    assert stat_number({"sharesAccepted": "5"}, SHARES_ACCEPTED_PATHS) == 5.0
    assert stat_value({"efficiency": "", "ghw": 30}, EFFICIENCY_PATHS) == 30
    assert stat_value(None, EFFICIENCY_PATHS) is None
    assert field_text({"ssid": None}, (("ssid",),), "--") == "--"


def test_resolve_efficiency_prefers_reported_value():
    assert resolve_efficiency({"efficiencyGHW": 40.0, "hashRate": 550, "power": 12}) == 40.0
    assert math.isclose(resolve_efficiency({"hashRate": 550, "power": 12.0}), 45.8333, rel_tol=1e-4)
    assert math.isnan(resolve_efficiency({"hashRate": 550, "power": 0}))
    assert math.isnan(resolve_efficiency({}))


def test_resolve_wifi_rssi_nested_container():
    assert resolve_wifi_rssi({"wifiRSSI": -60}) == -60.0
    assert resolve_wifi_rssi({"wifi": {"signalDbm": "-71"}}) == -71.0
    assert math.isnan(resolve_wifi_rssi({"wifi": {"ssid": "home"}}))


def test_voltage_rails_sorted_by_name():
    stats = {"voltages": {"vcore": 1200, "3v3": 3.3, "1v8": "1.8"}}
    assert voltage_rails(stats) == [("1v8", 1.8), ("3v3", 3.3), ("vcore", 1200.0)]
    assert voltage_rails({"voltage": 5000}) == []
