import math

import pytest

from bitaxe_monitor.gui.format import (
    format_bytes,
    format_difficulty,
    format_efficiency,
    format_hashrate,
    format_power,
    format_rail_voltage,
    format_temperature,
    format_uptime,
    format_uptime_compact,
    round_half_up,
)


@pytest.mark.parametrize(
    "value, unit, expected",
    [
        (550, "auto", "0.55 TH/s"),
        (1500, "auto", "1.50 TH/s"),
        (50, "auto", "50.00 GH/s"),
        (1500, "GH/s", "1500.00 GH/s"),
        (50, "TH/s", "0.05 TH/s"),
        (0, "auto", "0 GH/s"),
        (math.nan, "auto", "0 GH/s"),
        (None, "auto", "0 GH/s"),
    ],
)
def test_format_hashrate(value, unit, expected):
    assert format_hashrate(value, unit) == expected


def test_simple_formatters():
    assert format_temperature(58) == "58°C"
    assert format_temperature(57.5) == "58°C"
    assert format_temperature(math.nan) == "--"
    assert format_power(12.0) == "12.00W"
    assert format_efficiency(550 / 12.0) == "45.83 GH/W"
    assert format_efficiency(0) == "--"
    assert round_half_up(2.5) == 3


def test_format_uptime():
    assert format_uptime(93780) == "1d 2h 3m"
    assert format_uptime(3720) == "1h 2m"
    assert format_uptime(59) == "0m"
    assert format_uptime(None) == "--"
    assert format_uptime_compact(3720) == "1h2m"
    assert format_uptime_compact(0) is None


def test_scaled_formatters():
    assert format_difficulty(1.5e9) == "1.50B"
    assert format_difficulty(2500) == "2.50K"
    assert format_difficulty(0) == "--"
    assert format_bytes(2048) == "2.00 KB"
    assert format_bytes(3 * 1024 * 1024) == "3.00 MB"
    assert format_rail_voltage(1200) == "1200 mV"
    assert format_rail_voltage(1.2) == "1.20 V"
