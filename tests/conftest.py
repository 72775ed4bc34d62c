from pathlib import Path

import pytest

from bitaxe_monitor.io import SettingsStore

from helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path):
    return SettingsStore(tmp_path / "settings.yml")
